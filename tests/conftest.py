"""Shared fixtures: receipts with fake invoices, a manual clock and a
recording price source."""

import json
from types import SimpleNamespace

import bolt11
import pytest

import boardfiat as fiat
import boardreceipts as receipts

TARGET = "f0" * 32
OTHER_TARGET = "0f" * 32
PROVIDER = "9" * 64
RECIPIENT = "8" * 64
PAYER_1 = "1" * 64
PAYER_2 = "2" * 64
PAYER_3 = "3" * 64
FAKE_INVOICE_PREFIX = "lnbcfake"


def fakeInvoice(amountSats):
    if amountSats is None:
        return FAKE_INVOICE_PREFIX
    return f"{FAKE_INVOICE_PREFIX}{amountSats}"


@pytest.fixture(autouse=True)
def fakeInvoices(monkeypatch):
    """Stand in for bolt11.decode: 'lnbcfake2100' is a 2100 sat invoice,
    'lnbcfake' has no amount and anything else fails to decode."""

    def decode(paymentRequest):
        if not paymentRequest.startswith(FAKE_INVOICE_PREFIX):
            raise ValueError("Invalid bech32 string")
        amount = paymentRequest[len(FAKE_INVOICE_PREFIX):]
        amountMsat = None if amount == "" else int(amount) * 1000
        return SimpleNamespace(amount_msat=amountMsat)

    monkeypatch.setattr(bolt11, "decode", decode)


@pytest.fixture
def makeReceipt():
    def factory(receiptId, payer, amountSats, comment="", createdAt=1700000000,
                target=TARGET, targetTag="e", requestAmountMsat=None):
        requestTags = [["p", RECIPIENT], [targetTag, target]]
        if requestAmountMsat is not None:
            requestTags.append(["amount", str(requestAmountMsat)])
        zapRequest = {
            "kind": 9734,
            "pubkey": payer,
            "content": comment,
            "created_at": createdAt - 1,
            "tags": requestTags,
        }
        tags = [
            ["p", RECIPIENT],
            [targetTag, target],
            ["bolt11", fakeInvoice(amountSats)],
            ["description", json.dumps(zapRequest)],
        ]
        return receipts.ZapReceipt(id=receiptId, pubkey=PROVIDER, tags=tags, created_at=createdAt)

    return factory


@pytest.fixture
def makeRecord():
    def factory(recordId, payer, amountSats, timestampSec=1700000000, comment="", targetId=TARGET):
        return receipts.ZapRecord(
            id=recordId,
            payerPubkey=payer,
            amountSats=amountSats,
            comment=comment,
            timestampSec=timestampSec,
            targetId=targetId,
        )

    return factory


class ManualClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return ManualClock()


class FakePriceSource:
    """Callable with the same shape as boardfiat's json fetcher."""

    def __init__(self, prices=None, historical=None):
        self.prices = prices if prices is not None else {"USD": 50000, "EUR": 45000, "JPY": 7000000}
        self.historical = historical if historical is not None else {}
        self.failPrices = False
        self.historicalResponses = {}     # raw responses that override historical
        self.calls = []

    def __call__(self, url, params=None):
        self.calls.append((url, params))
        if params is None:
            if self.failPrices:
                raise fiat.PriceFetchError("price service unavailable")
            return dict(self.prices, time=1700000000)
        key = (params["timestamp"], params["currency"])
        if key in self.historicalResponses:
            return self.historicalResponses[key]
        if key not in self.historical:
            return {"prices": [], "exchangeRates": {}}
        return {"prices": [{"time": key[0], key[1]: self.historical[key]}], "exchangeRates": {}}

    def historicalCalls(self):
        return [params for _, params in self.calls if params is not None]

    def priceCalls(self):
        return [url for url, params in self.calls if params is None]


@pytest.fixture
def priceSource():
    return FakePriceSource()
