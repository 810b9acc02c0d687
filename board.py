#!/usr/bin/env python3
from logging.handlers import RotatingFileHandler
import logging
import shutil
import sys
import time
import boardengine as engine
import boardfiat as fiat
import boardfiles as files
import boardledger as ledger
import boardnostr as nostr
import boardnotify as notify
import boardprofiles as profiles
import boardreceipts as receipts
import boardreports as reports
import boardsession as session
import boardutils as utils

def onNotification(notification):
    global reportNeeded
    reports.recordNotification(notification)
    reportNeeded = True

def onPlan(plans):
    global reportNeeded
    reportNeeded = True
    if not showHistorical: return
    for record in zapEngine.session.records:
        if record.id in historicalRequested: continue
        historicalRequested.add(record.id)
        zapEngine.requestHistoricalFiat(record, onHistoricalFiat)

def onHistoricalFiat(record, conversion):
    global reportNeeded
    if conversion is None: return
    reports.recordHistoricalFiat(record, conversion)
    reportNeeded = True

if __name__ == '__main__':

    files.makeFolders()

    # Logging to systemd
    logger = logging.getLogger(__name__)
    logger.setLevel(logging.DEBUG)
    formatter = logging.Formatter(fmt="%(asctime)s %(name)s.%(levelname)s: %(message)s", datefmt="%Y.%m.%d %H:%M:%S")
    stdoutLoggingHandler = logging.StreamHandler(stream=sys.stdout)
    stdoutLoggingHandler.setFormatter(formatter)
    logging.Formatter.converter = time.gmtime
    logger.addHandler(stdoutLoggingHandler)
    logFile = f"{files.logFolder}board.log"
    fileLoggingHandler = RotatingFileHandler(logFile, mode='a', maxBytes=10*1024*1024,
                                 backupCount=21, encoding=None, delay=0)
    fileLoggingHandler.setFormatter(formatter)
    logger.addHandler(fileLoggingHandler)
    for module in (engine, fiat, files, ledger, nostr, notify, profiles, receipts, reports, session):
        module.logger = logger

    # Load config
    boardConfig = files.getConfig(files.configFilename)
    if len(boardConfig.keys()) == 0:
        shutil.copy(files.sampleConfigFilename, files.configFilename)
        logger.info(f"Copied {files.sampleConfigFilename} to {files.configFilename}")
        logger.info("You will need to modify this file to set relays and the note or live event to display")
        quit()
    nostr.config = files.getConfigSection(boardConfig, "nostr")
    reports.config = files.getConfigSection(boardConfig, "reports")
    displayConfig = files.getConfigSection(boardConfig, "display")
    fiatConfig = files.getConfigSection(boardConfig, "fiat")

    # Resolve the note or live event to follow
    target = utils.getCommandArg("target")
    if target is None and "target" in displayConfig: target = displayConfig["target"]
    tagName, tagValue = utils.normalizeTargetRef(target)
    if tagName is None:
        logger.error(f"Target ({target}) is not a note id or kind:pubkey:identifier coordinate")
        quit()
    if tagName == "e":
        logger.info(f"Following zaps for note {utils.hexToBech32(tagValue, 'note')}")
    else:
        logger.info(f"Following zaps for live event {tagValue}")
    reportURL = reports.getReportURL(tagValue)
    if reportURL is not None:
        logger.info(f"Snapshot reports will be published to {reportURL}")

    fiatConverter = None
    if fiatConfig.get("enabled", True):
        fiatConverter = fiat.FiatConverter(fiatConfig)
    zapEngine = engine.ZapBoardEngine(displayConfig=displayConfig, fiatConverter=fiatConverter)
    zapEngine.addNotificationListener(onNotification)
    zapEngine.addPlanListener(onPlan)
    showHistorical = fiatConverter is not None and fiatConfig.get("showHistorical", False)
    historicalRequested = set()
    reportNeeded = True

    # Connect to relays and subscribe
    nostr.connectToRelays()
    nostr.subscribeToZaps(zapEngine, tagName, tagValue)
    backlogTimeout = nostr.config.get("backlogTimeout", 30)

    startTime, _ = utils.getTimes()
    lastRelayReconnectTime = startTime
    relayReconnectInterval = (30 * 60)
    sleepMin = 0.25
    sleepMax = 2
    sleepGrowth = 1.5
    sleepTime = sleepMin

    # Board loop
    while True:
        eventCount = nostr.siftMessagePool(zapEngine)
        nostr.checkBacklogTimeout(zapEngine, backlogTimeout)

        # fetch profiles of payers seen since the last pass
        payers = zapEngine.takeProfileRequests()
        if len(payers) > 0:
            nostr.subscribeToProfiles(payers)

        # debounced re-plan, price refresh and historical lookups
        zapEngine.tick()

        if reportNeeded and not zapEngine.replanDebouncer.pending:
            reports.makeSnapshotReport(zapEngine)
            reportNeeded = False

        # reconnect relays periodically
        loopEndTime, _ = utils.getTimes()
        if lastRelayReconnectTime + relayReconnectInterval < loopEndTime:
            nostr.reconnectRelays(zapEngine)
            lastRelayReconnectTime, _ = utils.getTimes()

        if eventCount > 0:
            sleepTime = sleepMin
        else:
            sleepTime = min(sleepTime * sleepGrowth, sleepMax)
        time.sleep(sleepTime)
