"""Infrastructure adapters for Autopilot device naming.

These adapters implement the port interfaces defined in the domain layer,
connecting the workflow to Microsoft Graph, directive files and report files.
"""

from .directive_parser import HeaderLayout, NameColumn, OpenpyxlDirectiveParser
from .graph_directory import GraphDeviceDirectory, to_remote_device
from .graph_name_updater import GraphNameUpdater
from .report_writer import FileReportWriter

__all__ = [
    "OpenpyxlDirectiveParser",
    "HeaderLayout",
    "NameColumn",
    "GraphDeviceDirectory",
    "to_remote_device",
    "GraphNameUpdater",
    "FileReportWriter",
]
