#!/usr/bin/env python3
from dataclasses import dataclass
import logging
import boardprofiles as profiles

logger = logging.getLogger("zapboard")     # replaced by board.py

@dataclass
class ZapperTotal:
    payerPubkey: str
    amountSats: int
    displayName: str
    pictureUrl: str
    zapCount: int = 0

@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int
    payerPubkey: str
    amountSats: int
    displayName: str
    pictureUrl: str

    def asDict(self):
        return {
            "rank": self.rank,
            "payerPubkey": self.payerPubkey,
            "displayName": self.displayName,
            "pictureUrl": self.pictureUrl,
            "amountSats": self.amountSats,
            }

class LeaderboardAggregator:
    def __init__(self, defaultName=profiles.DEFAULT_NAME, defaultPicture=profiles.DEFAULT_PICTURE):
        self.defaultName = defaultName
        self.defaultPicture = defaultPicture
        self.totals = {}        # k = payer pubkey, insertion order is first-seen order
        self.ranked = []

    def accumulate(self, record):
        total = self.totals.get(record.payerPubkey)
        if total is None:
            total = ZapperTotal(
                payerPubkey=record.payerPubkey,
                amountSats=0,
                displayName=self.defaultName,
                pictureUrl=self.defaultPicture,
                )
            self.totals[record.payerPubkey] = total
        total.amountSats += record.amountSats
        total.zapCount += 1
        self.recompute()
        return total

    def attachProfile(self, payerPubkey, name, picture):
        total = self.totals.get(payerPubkey)
        if total is None: return False
        total.displayName = name if name else self.defaultName
        total.pictureUrl = picture if picture else self.defaultPicture
        self.recompute()
        return True

    def recompute(self):
        # stable sort keeps first-seen order between equal totals
        self.ranked = sorted(self.totals.values(), key=lambda t: -t.amountSats)

    def topN(self, n=5):
        entries = []
        for idx, total in enumerate(self.ranked[:n]):
            entries.append(LeaderboardEntry(
                rank=idx + 1,
                payerPubkey=total.payerPubkey,
                amountSats=total.amountSats,
                displayName=total.displayName,
                pictureUrl=total.pictureUrl,
                ))
        return entries

    def totalFor(self, payerPubkey):
        total = self.totals.get(payerPubkey)
        if total is None: return 0
        return total.amountSats

    def reset(self):
        self.totals = {}
        self.ranked = []
