#!/usr/bin/env python3
import logging

logger = logging.getLogger("zapboard")     # replaced by board.py

class Session:
    def __init__(self, sessionKey=None, generation=0):
        self.sessionKey = sessionKey
        self.generation = generation
        self.isBacklogComplete = False
        self.records = []
        self.seenIds = set()

    def amounts(self):
        return [record.amountSats for record in self.records]

    def __len__(self):
        return len(self.records)

class SessionAccumulator:
    """Owns the deduplicated, arrival ordered zap records of one session.

    The dedup set is what keeps redundant relay deliveries from being
    counted twice, so every record has to pass through add().
    """

    def __init__(self, sessionKey=None):
        self.session = Session(sessionKey)

    def add(self, record):
        session = self.session
        if record.id in session.seenIds:
            logger.debug(f"Ignoring duplicate zap receipt {record.id}")
            return False
        session.seenIds.add(record.id)
        session.records.append(record)
        return True

    def reset(self, newSessionKey):
        oldSession = self.session
        self.session = Session(newSessionKey, oldSession.generation + 1)
        logger.info(f"Session reset from {oldSession.sessionKey} ({len(oldSession)} zaps) to {newSessionKey}")
        return self.session

    def markBacklogComplete(self):
        if self.session.isBacklogComplete: return False
        self.session.isBacklogComplete = True
        logger.info(f"Backlog complete for {self.session.sessionKey} with {len(self.session)} zaps")
        return True

    def amounts(self):
        return self.session.amounts()

    def totalSats(self):
        return sum(self.session.amounts())

    def rankedRecords(self):
        # sorted() is stable, so equal amounts keep arrival order
        return sorted(self.session.records, key=lambda r: -r.amountSats)

    def chronologicalRecords(self):
        return sorted(self.session.records, key=lambda r: -r.timestampSec)
