"""
Reporting module for govgate.

Output formats:
    - Console: Rich terminal output with a decision panel and tables
    - JSON: Structured output for programmatic consumption

Example:
    from govgate.report import generate_console_report, generate_json_report

    result = engine.evaluate(resource, assignments)
    generate_console_report(result, resource)
    print(generate_json_report(result, resource))
"""

from govgate.report.console import generate_console_report, generate_scan_console_report
from govgate.report.json import (
    build_result_dict,
    build_scan_dict,
    generate_json_report,
    generate_scan_json_report,
)

__all__ = [
    "build_result_dict",
    "build_scan_dict",
    "generate_console_report",
    "generate_json_report",
    "generate_scan_console_report",
    "generate_scan_json_report",
]
