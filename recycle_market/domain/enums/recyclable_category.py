from enum import Enum


class RecyclableCategory(str, Enum):
    PLASTIC = "plastic"
    GLASS = "glass"
    METAL = "metal"
    PAPER = "paper"
    CARDBOARD = "cardboard"
    OTHER = "other"

    @property
    def uses_bottle_size(self) -> bool:
        """Bottle sizes only describe plastic and glass containers."""
        return self in (RecyclableCategory.PLASTIC, RecyclableCategory.GLASS)


class BottleSize(str, Enum):
    CL_50 = "50cl"
    CL_60 = "60cl"
    CL_75 = "75cl"
    LITER_1 = "1 liter"
    LITER_1_5 = "1.5 liter"
    LITER_2 = "2 liter"
    LITER_3 = "3 liter"
    LITER_5 = "5 liter"
    OTHER = "Other"
