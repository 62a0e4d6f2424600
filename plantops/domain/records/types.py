from enum import Enum


class MutationAction(str, Enum):
    EDIT = "edit"
    DELETE = "delete"


class DomainType(str, Enum):
    """Data domains of the plant dashboard; values are backend sheet names."""

    PRODUCTION_NPK = "produksi_npk"
    PRODUCTION_BLENDING = "produksi_blending"
    PRODUCTION_NPK_MINI = "produksi_npk_mini"
    TIMESHEET_FORKLIFT = "timesheet_forklift"
    TIMESHEET_LOADER = "timesheet_loader"
    DOWNTIME = "downtime"
    WORK_REQUEST = "workrequest"
    RAW_MATERIAL = "bahanbaku"
    VIBRATION = "vibrasi"
    GATE_PASS = "gatepass"
    FUEL = "perta"
    ANNUAL_REPAIR = "perbaikan_tahunan"
    TROUBLE_RECORD = "trouble_record"
    KOP = "kop"
    PHOTO_DOCUMENTATION = "dokumentasi_foto"


def parse_domain_type(value: "DomainType | str") -> DomainType:
    """Accept either the enum, its value (sheet name) or its member name."""
    if isinstance(value, DomainType):
        return value
    try:
        return DomainType(value)
    except ValueError:
        try:
            return DomainType[str(value).upper()]
        except KeyError:
            raise ValueError(f"Unknown domain type: {value!r}") from None
