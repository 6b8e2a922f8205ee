"""UI layer -- Rich dashboard and output formatters."""

from .dashboard import (
    ConsoleSink,
    ReachabilityTable,
    build_reachability_table,
    console,
    create_sparkline,
    format_cell,
    format_client_info,
    print_client_info,
    print_header,
    print_session_summary,
)
from .output import (
    format_text_result,
    reachability_to_dict,
    save_json,
    session_to_dict,
)

__all__ = [
    "ConsoleSink",
    "ReachabilityTable",
    "build_reachability_table",
    "console",
    "create_sparkline",
    "format_cell",
    "format_client_info",
    "format_text_result",
    "print_client_info",
    "print_header",
    "print_session_summary",
    "reachability_to_dict",
    "save_json",
    "session_to_dict",
]
