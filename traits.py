"""
Trait tags and translation tables.

A gene's 16-bit genetic payload is translated into at most one trait through
the species' TranslationTable. Traits are either sensors (extra inputs for the
Control unit), actuators (extra outputs) or simple traits (passive modifiers).

Every ``from_string`` returns None for an unknown name; callers decide whether
an unknown tag is fatal.
"""

import logging
from enum import Enum

from config import MASTER_TRANSLATION_TABLE

logger = logging.getLogger(__name__)


class TagEnum(Enum):
    """Enum whose values are lowercase names used in configuration files."""

    @classmethod
    def from_string(cls, name):
        if not isinstance(name, str):
            return None
        key = name.strip().lower()
        for member in cls:
            if member.value == key:
                return member
        return None

    def __str__(self):
        return self.value


class SensorTag(TagEnum):
    POSITION_X = "positionx"
    POSITION_Y = "positiony"
    ORIENTATION = "orientation"
    LAST_MOVE_SUCCEEDED = "lastmovesucceeded"
    TEMPERATURE = "temperature"


class ActuatorTag(TagEnum):
    MOVE_HORIZONTAL = "movehorizontal"
    MOVE_VERTICAL = "movevertical"
    ROTATE = "rotate"
    THERMAL_REGULATION = "thermalregulation"


class TraitTag(TagEnum):
    EMPTY = "empty"
    SPEED_TRAIT = "speedtrait"


class TraitTier(Enum):
    TIER_I = "TierI"
    TIER_II = "TierII"
    TIER_III = "TierIII"

    @classmethod
    def from_string(cls, name):
        for member in cls:
            if member.value == name:
                return member
        return None

    @classmethod
    def from_int(cls, value: int):
        tiers = {1: cls.TIER_I, 2: cls.TIER_II, 3: cls.TIER_III}
        if value not in tiers:
            raise ValueError(f"No trait tier {value}")
        return tiers[value]

    def __str__(self):
        return self.value


def parse_trait(name):
    """
    Resolve a trait name to its tag. Actuators win over sensors, sensors over
    simple traits, matching the lookup order of translation tables.
    """
    for tag_cls in (ActuatorTag, SensorTag, TraitTag):
        tag = tag_cls.from_string(name)
        if tag is not None:
            return tag
    return None


class TranslationTable:
    """
    Maps (tier, trait number) → trait tag for one species.

    Genetic payloads are translated by position: the payload modulo
    (entries + 1) indexes the sorted entries, the extra slot meaning
    "no trait".
    """

    def __init__(self, entries=None):
        self.entries = dict(entries or {})
        self._keys = sorted(self.entries, key=lambda k: (k[0].value, k[1]))

    @classmethod
    def from_master_config(cls, master=MASTER_TRANSLATION_TABLE):
        """Build a table from ``{(tier_name, number): trait_name}``."""
        entries = {}
        for (tier_name, number), trait_name in master.items():
            tier = TraitTier.from_string(tier_name)
            tag = parse_trait(trait_name)
            if tier is None or tag is None:
                logger.warning("Skipping unknown trait %s/%s → %s",
                               tier_name, number, trait_name)
                continue
            entries[(tier, int(number))] = tag
        return cls(entries)

    @classmethod
    def from_list(cls, items: list, master: dict):
        """
        Build from a list of ``{"Tier": ..., "TID": ...}`` entries, resolving
        each against `master`. Unknown entries are logged and skipped.
        """
        entries = {}
        for item in items or []:
            if not isinstance(item, dict):
                logger.warning("Wrong type of entry in TranslationTable: %r", item)
                continue
            tier = TraitTier.from_string(item.get("Tier"))
            number = item.get("TID", item.get("Number"))
            if tier is None or number is None:
                logger.warning("Unrecognised translation entry %r", item)
                continue
            key = (tier, int(number))
            if key not in master:
                logger.warning("Translation entry %s/%s not in master table",
                               tier, number)
                continue
            entries[key] = master[key]
        return cls(entries)

    def translate(self, genetic_payload: int):
        """Trait tag for a 16-bit genetic payload, or None."""
        if not self._keys:
            return None
        index = int(genetic_payload) % (len(self._keys) + 1)
        if index == len(self._keys):
            return None
        return self.entries[self._keys[index]]

    def __len__(self):
        return len(self.entries)

    def to_list(self) -> list:
        return [{"Tier": str(tier), "TID": number} for tier, number in self._keys]
