"""Turn discovered stations into sync units."""

from __future__ import annotations

import logging
from typing import Iterable

from src.netatmo.base import DataType, DeviceID, ModuleID, NO_MODULE, SyncUnit
from src.netatmo.protocol import Station

logger = logging.getLogger("netatmo_sync.sync.units")


def _known_types(owner: str, raw_types: Iterable[str]) -> tuple[DataType, ...]:
    types: list[DataType] = []
    for raw in raw_types:
        data_type = DataType.parse(raw)
        if data_type is None:
            logger.warning("Ignoring unsupported data type %r on %s", raw, owner)
            continue
        types.append(data_type)
    return tuple(types)


def build_units(stations: Iterable[Station]) -> list[SyncUnit]:
    """One unit per station, followed by one per attached module.

    Every unit carries the labels ``dev_id``, ``home_id``, ``home_name``,
    ``module_name`` and ``module_type``.  Units with no supported data type
    are dropped.
    """
    units: list[SyncUnit] = []
    for station in stations:
        common = {"home_id": station.home_id, "home_name": station.home_name}

        candidates = [
            (
                NO_MODULE,
                station.data_type,
                {
                    **common,
                    "dev_id": station.id,
                    "module_name": station.module_name,
                    "module_type": station.type,
                },
            )
        ]
        for module in station.modules:
            candidates.append(
                (
                    ModuleID(module.id),
                    module.data_type,
                    {
                        **common,
                        "dev_id": module.id,
                        "module_name": module.module_name,
                        "module_type": module.type,
                    },
                )
            )

        for module_id, raw_types, labels in candidates:
            owner = module_id or station.id
            data_types = _known_types(owner, raw_types)
            if not data_types:
                logger.info("Skipping %s: no supported data types", owner)
                continue
            units.append(
                SyncUnit(
                    device=DeviceID(station.id),
                    module=module_id,
                    data_types=data_types,
                    labels=labels,
                )
            )
    return units
