#!/usr/bin/env python3
"""Zap receipt (kind 9735) decoding.

A receipt carries the signed zap request (kind 9734) as JSON in its
description tag and the paid invoice in its bolt11 tag. The amount is always
read from the invoice, never from the request's amount tag.
"""
from dataclasses import dataclass, field
import json
import logging
import bolt11

logger = logging.getLogger("zapboard")     # replaced by board.py

KIND_ZAP_RECEIPT = 9735

class DecodeError(Exception):
    def __init__(self, receiptId, reason):
        super().__init__(f"{reason} (receipt {receiptId})")
        self.receiptId = receiptId
        self.reason = reason

class MalformedReceipt(DecodeError):
    pass

class InvoiceDecodeError(DecodeError):
    pass

@dataclass
class ZapReceipt:
    id: str
    pubkey: str
    tags: list = field(default_factory=list)
    created_at: int = 0

@dataclass(frozen=True)
class ZapRecord:
    id: str
    payerPubkey: str
    amountSats: int
    comment: str
    timestampSec: int
    targetId: str = None
    bolt11: str = None

def receiptFromEvent(event):
    # nostr.event.Event exposes public_key and computes id from its content
    return ZapReceipt(
        id=event.id,
        pubkey=event.public_key,
        tags=list(event.tags or []),
        created_at=event.created_at,
        )

def isTagWithValue(tag):
    return isinstance(tag, (list, tuple)) and len(tag) >= 2

def findTag(tags, name):
    for tag in tags:
        if not isTagWithValue(tag): continue # exclude tags without values
        if tag[0] == name: return tag[1]
    return None

def findTagValues(tags, name):
    return [tag[1] for tag in tags if isTagWithValue(tag) and tag[0] == name]

def getTargetId(tags, expectedTarget=None):
    aValues = findTagValues(tags, "a")
    eValues = findTagValues(tags, "e")
    if expectedTarget is not None and expectedTarget in (aValues + eValues):
        return expectedTarget
    if len(aValues) > 0: return aValues[0]
    if len(eValues) > 0: return eValues[0]
    return None

def decodeInvoiceAmount(paymentRequest):
    invoice = bolt11.decode(paymentRequest)
    amountMsat = invoice.amount_msat
    if amountMsat is None: return 0
    return max(int(amountMsat) // 1000, 0)

def decodeReceipt(receipt, expectedTarget=None):
    receiptId = receipt.id
    tags = receipt.tags if isinstance(receipt.tags, (list, tuple)) else []
    description = findTag(tags, "description")
    if description is None:
        return None, MalformedReceipt(receiptId, "missing description tag")
    try:
        zapRequest = json.loads(description)
    except (TypeError, ValueError):
        return None, MalformedReceipt(receiptId, "description is not json")
    if type(zapRequest) is not dict:
        return None, MalformedReceipt(receiptId, "description is not a zap request object")
    payerPubkey = zapRequest.get("pubkey")
    if type(payerPubkey) is not str or len(payerPubkey) == 0:
        return None, MalformedReceipt(receiptId, "zap request has no pubkey")
    comment = zapRequest.get("content") or ""
    if type(comment) is not str: comment = str(comment)
    paymentRequest = findTag(tags, "bolt11")
    if type(paymentRequest) is not str or len(paymentRequest) == 0:
        return None, MalformedReceipt(receiptId, "missing bolt11 tag")
    try:
        amountSats = decodeInvoiceAmount(paymentRequest)
    except Exception as err:
        return None, InvoiceDecodeError(receiptId, f"invoice could not be decoded: {str(err)}")
    try:
        timestampSec = int(receipt.created_at or 0)
    except (TypeError, ValueError):
        return None, MalformedReceipt(receiptId, "created_at is not a number")
    record = ZapRecord(
        id=receiptId,
        payerPubkey=payerPubkey,
        amountSats=amountSats,
        comment=comment,
        timestampSec=timestampSec,
        targetId=getTargetId(tags, expectedTarget),
        bolt11=paymentRequest,
        )
    return record, None

def decodeReceiptOrDiscard(receipt, expectedTarget=None):
    record, error = decodeReceipt(receipt, expectedTarget)
    if error is None: return record
    if isinstance(error, InvoiceDecodeError):
        logger.warning(f"Discarding zap receipt: {error}")
    else:
        logger.debug(f"Discarding zap receipt: {error}")
    return None
