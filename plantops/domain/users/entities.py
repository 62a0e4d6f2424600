from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    AVP = "avp"
    SUPERVISOR = "supervisor"
    OPERATOR = "operator"
    EXTERNAL = "external"
    VIEWER = "viewer"


class Plant(str, Enum):
    NPK1 = "NPK1"
    NPK2 = "NPK2"
    ALL = "ALL"


@dataclass(frozen=True)
class User:
    """An authenticated dashboard user. Role and plant are fixed per session."""

    username: str
    role: Role | str
    plant: Plant = Plant.NPK2
    name: str | None = None

    @property
    def has_cross_plant_authority(self) -> bool:
        return self.plant == Plant.ALL

    def has_authority_over(self, plant_scope: Plant | str) -> bool:
        if self.has_cross_plant_authority:
            return True
        return _plant_value(self.plant) == _plant_value(plant_scope)


def _plant_value(plant: Plant | str) -> str:
    return plant.value if isinstance(plant, Plant) else str(plant)
