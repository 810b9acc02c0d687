#!/usr/bin/env python3
from dataclasses import dataclass
import logging
import boardrank as rank

logger = logging.getLogger("zapboard")     # replaced by board.py

@dataclass(frozen=True)
class ZapNotification:
    payerName: str
    payerPicture: str
    comment: str
    amountSats: int
    rank: int
    recordId: str = None
    timestampSec: int = 0

    def asDict(self):
        return {
            "payerName": self.payerName,
            "payerPicture": self.payerPicture,
            "comment": self.comment,
            "amountSats": self.amountSats,
            "rank": self.rank,
            "recordId": self.recordId,
            "timestampSec": self.timestampSec,
            }

@dataclass(frozen=True)
class PendingNotification:
    record: object
    rank: int
    generation: int = 0

class NotificationScheduler:
    """Holds live zaps until the payer's profile is known, then emits them.

    Zaps delivered as part of the backlog never notify. There is at most one
    pending zap per payer; a newer zap from the same payer replaces it.
    """

    def __init__(self):
        self.pending = {}       # k = payer pubkey
        self.listeners = []
        self.generation = 0

    def addListener(self, callback):
        self.listeners.append(callback)

    def onRecordAdded(self, record, session, profile=None):
        if not session.isBacklogComplete: return None
        zapRank = rank.rankOf(record.amountSats, session.amounts())
        if profile is not None:
            return self.emit(PendingNotification(record, zapRank, session.generation), profile)
        if record.payerPubkey in self.pending:
            logger.debug(f"Replacing pending notification for {record.payerPubkey}")
        self.pending[record.payerPubkey] = PendingNotification(record, zapRank, session.generation)
        return None

    def onProfileResolved(self, payerPubkey, profile):
        pendingNotification = self.pending.pop(payerPubkey, None)
        if pendingNotification is None: return None
        if pendingNotification.generation != self.generation:
            logger.debug(f"Dropping notification for {payerPubkey} from an earlier session")
            return None
        return self.emit(pendingNotification, profile)

    def onSessionReset(self, generation=None):
        if len(self.pending) > 0:
            logger.debug(f"Discarding {len(self.pending)} pending notifications")
        self.pending = {}
        self.generation = self.generation + 1 if generation is None else generation

    def emit(self, pendingNotification, profile):
        record = pendingNotification.record
        notification = ZapNotification(
            payerName=profile.name,
            payerPicture=profile.picture,
            comment=record.comment,
            amountSats=record.amountSats,
            rank=pendingNotification.rank,
            recordId=record.id,
            timestampSec=record.timestampSec,
            )
        logger.info(f"Zap notification: {notification.payerName} zapped {notification.amountSats} sats (rank {notification.rank})")
        for listener in self.listeners:
            listener(notification)
        return notification
