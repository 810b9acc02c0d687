#!/usr/bin/env python3
"""Row layout for the zap display grid.

Rows double in capacity (1, 2, 4, 8, 16). The fifth row is the last one and
takes every item that is left over, however many that is.
"""
from dataclasses import dataclass, field

SORT_AMOUNT = "amount"
SORT_TIME = "time"
SORT_MODES = (SORT_AMOUNT, SORT_TIME)
MAX_ROWS = 5
PODIUM_PLACES = 3

@dataclass(frozen=True)
class DisplayOptions:
    podiumEnabled: bool = False
    gridEnabled: bool = True
    sortMode: str = SORT_AMOUNT

    @classmethod
    def fromConfig(cls, displayConfig):
        sortMode = displayConfig.get("sortMode", SORT_AMOUNT)
        if sortMode not in SORT_MODES: sortMode = SORT_AMOUNT
        return cls(
            podiumEnabled=bool(displayConfig.get("podium", False)),
            gridEnabled=bool(displayConfig.get("grid", True)),
            sortMode=sortMode,
            )

@dataclass(frozen=True)
class GridItem:
    id: str
    amountSats: int
    timestampSec: int = 0

@dataclass
class GridRow:
    rowIndex: int
    capacity: int
    memberIds: list = field(default_factory=list)

@dataclass
class GridPlan:
    rows: list
    podium: dict
    sortMode: str = SORT_AMOUNT
    gridEnabled: bool = True

    def rowSizes(self):
        return [len(row.memberIds) for row in self.rows]

    def asDict(self):
        return {
            "sortMode": self.sortMode,
            "gridEnabled": self.gridEnabled,
            "rows": [{"rowIndex": r.rowIndex, "capacity": r.capacity, "memberIds": list(r.memberIds)} for r in self.rows],
            "podium": dict(self.podium),
            }

def itemsFromRecords(records):
    return [GridItem(r.id, r.amountSats, r.timestampSec) for r in records]

def orderItems(items, sortMode=SORT_AMOUNT):
    if sortMode == SORT_TIME:
        return sorted(items, key=lambda i: -i.timestampSec)
    return sorted(items, key=lambda i: -i.amountSats)

def planRows(orderedItems):
    rows = []
    currentIndex = 0
    rowIndex = 1
    capacity = 1
    while currentIndex < len(orderedItems):
        if rowIndex == MAX_ROWS:
            members = orderedItems[currentIndex:]
        else:
            members = orderedItems[currentIndex:currentIndex + capacity]
        rows.append(GridRow(rowIndex, capacity, [item.id for item in members]))
        currentIndex += len(members)
        capacity *= 2
        rowIndex += 1
    return rows

def podiumPlaces(items):
    # strict top three by amount; equal amounts keep input order
    top = sorted(items, key=lambda i: -i.amountSats)[:PODIUM_PLACES]
    return {item.id: place + 1 for place, item in enumerate(top)}

def planGrid(orderedItems, options=None):
    if options is None: options = DisplayOptions()
    orderedItems = list(orderedItems)
    if options.gridEnabled:
        rows = planRows(orderedItems)
    elif len(orderedItems) > 0:
        rows = [GridRow(1, len(orderedItems), [item.id for item in orderedItems])]
    else:
        rows = []
    podium = podiumPlaces(orderedItems) if options.podiumEnabled else {}
    return GridPlan(rows=rows, podium=podium, sortMode=options.sortMode, gridEnabled=options.gridEnabled)
