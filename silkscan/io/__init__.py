"""File boundaries: Gerber archives, BOM input, CPL output."""

from silkscan.io.archive import FABRICATION_EXTENSIONS, read_gerber_archive, read_gerber_files
from silkscan.io.bom import designator_set, load_bom
from silkscan.io.exporter import convert_units, cpl_filename, export_cpl, format_coordinate

__all__ = [
    "FABRICATION_EXTENSIONS",
    "convert_units",
    "cpl_filename",
    "designator_set",
    "export_cpl",
    "format_coordinate",
    "load_bom",
    "read_gerber_archive",
    "read_gerber_files",
]
