from .common import format_address, generate_control_id, hl7_timestamp, raise_if_cancelled

__all__ = ["generate_control_id", "hl7_timestamp", "raise_if_cancelled", "format_address"]
