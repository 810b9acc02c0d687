#!/usr/bin/env python3
from nostr.event import EventKind
from nostr.filter import Filter, Filters
from nostr.key import PublicKey
from nostr.message_type import ClientMessageType
from nostr.relay_manager import RelayManager
import json
import logging
import random
import ssl
import time
import boardreceipts as receipts
import boardutils as utils

logger = logging.getLogger("zapboard")     # replaced by board.py
config = {}
relayManager = None
_relayPublishTime = 0.5
_relayConnectTime = 1.25
_profileBatchSize = 50
_zapSubscription = None         # subscription id for the active session's receipts
_zapGeneration = None
_zapTarget = None               # (tag letter, tag value)
_zapSubscribedAt = None
_zapEoseRelays = set()
_profileSubscriptions = {}      # k = subscription id, v = relays that sent EOSE

def getNostrRelaysFromConfig(aConfig):
    relays = []
    if "relays" in aConfig:
        for relay in aConfig["relays"]:
            if type(relay) is str: relays.append(relay)
            if type(relay) is dict and "url" in relay:
                canread = relay["read"] if "read" in relay else True
                if canread: relays.append(relay["url"])
    return relays

def connectToRelays():
    logger.debug("Connecting to relays")
    global relayManager
    relayManager = RelayManager()
    relays = getNostrRelaysFromConfig(config).copy()
    random.shuffle(relays)
    relaysLeftToAdd = 50
    for nostrRelay in relays:
        if relaysLeftToAdd <= 0: break
        relaysLeftToAdd -= 1
        # each relay needs its own subscriptions dict, the library default is shared
        relayManager.add_relay(url=nostrRelay, subscriptions={})
    relayManager.open_connections({"cert_reqs": ssl.CERT_NONE})
    time.sleep(_relayConnectTime)

def disconnectRelays():
    logger.debug("Disconnecting from relays")
    if relayManager is not None: relayManager.close_connections()

def reconnectRelays(zapEngine):
    global _profileSubscriptions
    global _zapSubscription
    disconnectRelays()
    connectToRelays()
    _profileSubscriptions = {}
    _zapSubscription = None        # closed with the old connections
    # duplicates redelivered after a reconnect are dropped by the session dedup
    if _zapTarget is not None:
        subscribeToZaps(zapEngine, _zapTarget[0], _zapTarget[1], resubscribe=True)

def getRelayCount():
    if relayManager is None: return 0
    return len(relayManager.relays)

def publishRequest(subscriptionId, filters):
    relayManager.add_subscription(subscriptionId, filters)
    request = [ClientMessageType.REQUEST, subscriptionId]
    request.extend(filters.to_json_array())
    message = json.dumps(request)
    relayManager.publish_message(message)
    time.sleep(_relayPublishTime)

def removeSubscription(subid):
    request = [ClientMessageType.CLOSE, subid]
    message = json.dumps(request)
    relayManager.publish_message(message)
    time.sleep(_relayPublishTime)
    for relay in relayManager.relays.values():
        if subid in relay.subscriptions: relay.close_subscription(subid)

def makeZapFilters(tagName, tagValue):
    zapFilter = Filter(kinds=[receipts.KIND_ZAP_RECEIPT])
    zapFilter.add_arbitrary_tag(tagName, [tagValue])
    return Filters([zapFilter])

def subscribeToZaps(zapEngine, tagName, tagValue, resubscribe=False):
    global _zapSubscription
    global _zapGeneration
    global _zapTarget
    global _zapSubscribedAt
    global _zapEoseRelays
    if _zapSubscription is not None:
        removeSubscription(_zapSubscription)
    if not resubscribe:
        zapEngine.switchSession(tagValue)
    t, _ = utils.getTimes()
    _zapGeneration = zapEngine.generation
    _zapSubscription = f"zb_zaps_{_zapGeneration}_{t}"
    _zapTarget = (tagName, tagValue)
    _zapSubscribedAt = t
    _zapEoseRelays = set()
    logger.info(f"Subscribing to zap receipts for #{tagName} {tagValue}")
    publishRequest(_zapSubscription, makeZapFilters(tagName, tagValue))
    return _zapSubscription

def subscribeToProfiles(pubkeys):
    subscriptionIds = []
    for idx in range(0, len(pubkeys), _profileBatchSize):
        batch = pubkeys[idx:idx+_profileBatchSize]
        t, _ = utils.getTimes()
        subscriptionId = f"zb_profiles_{t}_{idx}"
        filters = Filters([Filter(kinds=[EventKind.SET_METADATA],authors=batch)])
        logger.debug(f"Requesting {len(batch)} profiles")
        publishRequest(subscriptionId, filters)
        _profileSubscriptions[subscriptionId] = set()
        subscriptionIds.append(subscriptionId)
    return subscriptionIds

def isValidSignature(event):
    sig = event.signature
    id = event.id
    publisherPubkey = event.public_key
    pubkey = PublicKey(raw_bytes=bytes.fromhex(publisherPubkey))
    return pubkey.verify_signed_message_hash(hash=id, sig=sig)

def handleProfileEvent(zapEngine, event):
    try:
        if not isValidSignature(event):
            logger.debug(f"Skipping profile with invalid signature for {event.public_key}")
            return
    except Exception as err:
        logger.debug(f"Skipping profile that could not be verified for {event.public_key}: {str(err)}")
        return
    zapEngine.onProfileEvent(event.public_key, event.content, event.created_at)

def handleEose(zapEngine, url, subid):
    if subid == _zapSubscription:
        _zapEoseRelays.add(url)
        if len(_zapEoseRelays) >= getRelayCount():
            zapEngine.onEndOfBacklog(_zapGeneration)
    elif subid in _profileSubscriptions:
        _profileSubscriptions[subid].add(url)
        if len(_profileSubscriptions[subid]) >= getRelayCount():
            del _profileSubscriptions[subid]
            removeSubscription(subid)

def checkBacklogTimeout(zapEngine, backlogTimeout):
    # slow or silent relays must not hold back live notifications forever
    if _zapSubscribedAt is None or zapEngine.session.isBacklogComplete: return False
    t, _ = utils.getTimes()
    if _zapSubscribedAt + backlogTimeout > t: return False
    logger.info(f"Backlog timeout reached with {len(_zapEoseRelays)} of {getRelayCount()} relays done")
    return zapEngine.onEndOfBacklog(_zapGeneration)

# This proc must understand all subscriptions
def siftMessagePool(zapEngine):
    eventCount = 0
    # EVENT
    while relayManager.message_pool.has_events():
        event_msg = relayManager.message_pool.get_event()
        subid = event_msg.subscription_id
        if subid == _zapSubscription:
            zapEngine.onReceipt(receipts.receiptFromEvent(event_msg.event), _zapGeneration)
            eventCount += 1
        elif subid.startswith("zb_profiles"):
            handleProfileEvent(zapEngine, event_msg.event)
            eventCount += 1
        elif subid.startswith("zb_zaps"):
            logger.debug(f"Ignoring zap receipt from closed subscription {subid}")
        else:
            logger.debug(f"Unexpected event from relay {event_msg.url} with subscription {subid}")
        relayManager.message_pool.events.task_done()
    # NOTICES
    while relayManager.message_pool.has_notices():
        notice = relayManager.message_pool.get_notice()
        logger.info(f"RELAY NOTICE FROM {notice.url}: {notice.content}")
        relayManager.message_pool.notices.task_done()
    # EOSE NOTICES
    while relayManager.message_pool.has_eose_notices():
        eose = relayManager.message_pool.get_eose_notice()
        handleEose(zapEngine, eose.url, eose.subscription_id)
        relayManager.message_pool.eose_notices.task_done()
    return eventCount
