#!/usr/bin/env python3
"""Zap ingestion engine for one live note or live stream at a time.

Every transport event (receipt, profile, end of backlog, option change,
price tick) enters through one of the on* methods and is handled to
completion on the caller's thread. Re-planning the display grid and
historical price lookups are debounced; accumulation never is.
"""
import logging
import time
import boardfiat as fiat
import boardgrid as grid
import boardledger as ledger
import boardnotify as notify
import boardprofiles as profiles
import boardreceipts as receipts
import boardsession as session
import boardutils as utils

logger = logging.getLogger("zapboard")     # replaced by board.py

PANE_ZAPS = "zaps"
PANE_ACTIVITY = "activity"

class ZapBoardEngine:
    def __init__(self, options=None, displayConfig=None, fiatConverter=None, clock=time.monotonic):
        displayConfig = displayConfig or {}
        self.options = options if options is not None else grid.DisplayOptions.fromConfig(displayConfig)
        self.leaderboardSize = displayConfig.get("leaderboardSize", 5)
        self.defaultName = displayConfig.get("defaultName", profiles.DEFAULT_NAME)
        self.defaultPicture = displayConfig.get("defaultPicture", profiles.DEFAULT_PICTURE)
        self.accumulator = session.SessionAccumulator()
        self.aggregator = ledger.LeaderboardAggregator(self.defaultName, self.defaultPicture)
        self.scheduler = notify.NotificationScheduler()
        self.fiat = fiatConverter
        self.profiles = {}              # k = pubkey, profiles outlive sessions
        self.profileRequests = set()
        self.planListeners = []
        self.plans = {}
        self.replanDebouncer = utils.Debouncer(displayConfig.get("gridDebounce", 0.25), self.replan, clock=clock)

    @property
    def session(self):
        return self.accumulator.session

    @property
    def generation(self):
        return self.accumulator.session.generation

    def addNotificationListener(self, callback):
        self.scheduler.addListener(callback)

    def addPlanListener(self, callback):
        self.planListeners.append(callback)

    # session lifecycle

    def switchSession(self, sessionKey):
        if sessionKey == self.session.sessionKey and self.session.generation > 0:
            logger.debug(f"Already tracking {sessionKey}")
            return False
        newSession = self.accumulator.reset(sessionKey)
        self.aggregator.reset()
        self.scheduler.onSessionReset(newSession.generation)
        if self.fiat is not None: self.fiat.invalidate()
        self.profileRequests = set()
        self.replanDebouncer.cancel()
        self.replan()
        return True

    def onEndOfBacklog(self, generation=None):
        if generation is not None and generation != self.generation:
            logger.debug("Ignoring end of backlog from an earlier session")
            return False
        if not self.accumulator.markBacklogComplete(): return False
        self.replanDebouncer.flush()
        return True

    # transport events

    def onReceipt(self, receipt, generation=None):
        if generation is not None and generation != self.generation:
            logger.debug(f"Ignoring zap receipt {receipt.id} from an earlier session")
            return False
        record = receipts.decodeReceiptOrDiscard(receipt, self.session.sessionKey)
        if record is None: return False
        return self.onRecord(record)

    def onRecord(self, record):
        sessionKey = self.session.sessionKey
        if sessionKey is not None and record.targetId is not None and record.targetId != sessionKey:
            logger.debug(f"Ignoring zap receipt {record.id} for {record.targetId} while tracking {sessionKey}")
            return False
        if not self.accumulator.add(record): return False
        self.aggregator.accumulate(record)
        profile = self.profiles.get(record.payerPubkey)
        if profile is not None:
            self.aggregator.attachProfile(record.payerPubkey, profile.name, profile.picture)
        else:
            self.profileRequests.add(record.payerPubkey)
        self.scheduler.onRecordAdded(record, self.session, profile)
        self.replanDebouncer.trigger()
        return True

    def onProfileEvent(self, pubkey, content, createdAt=0):
        profile = profiles.parseProfileContent(content, createdAt, self.defaultName, self.defaultPicture)
        return self.onProfileResolved(pubkey, profile)

    def onProfileResolved(self, pubkey, profile):
        known = self.profiles.get(pubkey)
        if known is not None and known.createdAt > profile.createdAt:
            logger.debug(f"Ignoring older profile for {pubkey}")
            profile = known
        self.profiles[pubkey] = profile
        self.profileRequests.discard(pubkey)
        self.aggregator.attachProfile(pubkey, profile.name, profile.picture)
        self.scheduler.onProfileResolved(pubkey, profile)
        return profile

    def takeProfileRequests(self):
        requested = sorted(self.profileRequests)
        self.profileRequests = set()
        return requested

    def setDisplayOptions(self, options):
        if options == self.options: return False
        self.options = options
        self.replanDebouncer.cancel()
        self.replan()
        return True

    def tick(self, now=None):
        if self.fiat is not None: self.fiat.tick(now)
        return self.replanDebouncer.poll(now)

    def flush(self):
        if self.fiat is not None: self.fiat.historicalDebouncer.flush()
        return self.replanDebouncer.flush()

    # projections

    def leaderboard(self, n=None):
        return self.aggregator.topN(self.leaderboardSize if n is None else n)

    def orderedRecords(self, pane=PANE_ZAPS):
        if pane == PANE_ACTIVITY: return self.accumulator.chronologicalRecords()
        if self.options.sortMode == grid.SORT_TIME: return self.accumulator.chronologicalRecords()
        return self.accumulator.rankedRecords()

    def paneOptions(self, pane):
        # the activity pane is always a plain chronological list
        if pane == PANE_ACTIVITY:
            return grid.DisplayOptions(podiumEnabled=False, gridEnabled=False, sortMode=grid.SORT_TIME)
        return self.options

    def gridPlan(self, pane=PANE_ZAPS):
        items = grid.itemsFromRecords(self.orderedRecords(pane))
        return grid.planGrid(items, self.paneOptions(pane))

    def replan(self):
        self.plans = {
            PANE_ZAPS: self.gridPlan(PANE_ZAPS),
            PANE_ACTIVITY: self.gridPlan(PANE_ACTIVITY),
            }
        for listener in self.planListeners:
            listener(self.plans)
        return self.plans

    def formatAmount(self, amountSats, currency=None):
        satsText = fiat.formatSats(amountSats)
        fiatText = "" if self.fiat is None else self.fiat.convert(amountSats, currency)
        return satsText, fiatText

    def requestHistoricalFiat(self, record, callback, currency=None):
        if self.fiat is None: return False
        generation = self.generation
        def onConversion(conversion):
            if generation != self.generation: return
            callback(record, conversion)
        self.fiat.requestHistorical(record.amountSats, record.timestampSec, currency, onConversion)
        return True

    def totalSats(self):
        return self.accumulator.totalSats()
