#!/usr/bin/env python3
from dataclasses import dataclass
import logging
import time
import requests
import boardutils as utils

logger = logging.getLogger("zapboard")     # replaced by board.py

PRICES_URL = "https://mempool.space/api/v1/prices"
HISTORICAL_PRICE_URL = "https://mempool.space/api/v1/historical-price"
SATS_PER_BTC = 100000000
WHOLE_UNIT_CURRENCIES = ("JPY",)

class PriceFetchError(Exception):
    pass

@dataclass(frozen=True)
class HistoricalConversion:
    current: str
    historical: str
    percentChange: str
    percentValue: float

def gettimeouts(config):
    connectTimeout = 5
    readTimeout = 30
    if "connectTimeout" in config: connectTimeout = config["connectTimeout"]
    if "readTimeout" in config: readTimeout = config["readTimeout"]
    return (connectTimeout, readTimeout)

def makeJsonFetcher(config):
    timeout = gettimeouts(config)
    def getJson(url, params=None):
        try:
            resp = requests.get(url,params=params,timeout=timeout,allow_redirects=True,verify=True)
            resp.raise_for_status()
            return resp.json()
        except (requests.RequestException, ValueError) as e:
            raise PriceFetchError(f"Error getting price data from {url}: {str(e)}") from e
    return getJson

def formatFiatValue(fiatAmount, currency):
    if currency in WHOLE_UNIT_CURRENCIES:
        return utils.numberWithCommas(utils.roundHalfUp(fiatAmount))
    return f"{fiatAmount:.2f}"

def formatFiat(fiatAmount, currency):
    return f"{formatFiatValue(fiatAmount, currency)} {currency}"

def formatSats(amountSats):
    return utils.numberWithCommas(amountSats)

def formatPercentChange(percentValue):
    if percentValue >= 0: return f"+{percentValue:.1f}%"
    return f"{percentValue:.1f}%"

def satsToBtc(amountSats):
    return amountSats / SATS_PER_BTC

def isPrice(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0

class FiatConverter:
    """Sat to fiat conversion. Fiat is enrichment only: when no price is
    known the formatted value is an empty string and sats stay authoritative.
    """

    def __init__(self, config=None, fetchJson=None, clock=time.monotonic):
        config = config or {}
        self.currency = config.get("currency", "USD")
        self.refreshInterval = config.get("refreshInterval", 30)
        self.pricesUrl = config.get("pricesUrl", PRICES_URL)
        self.historicalUrl = config.get("historicalUrl", HISTORICAL_PRICE_URL)
        self.fetchJson = fetchJson if fetchJson is not None else makeJsonFetcher(config)
        self.clock = clock
        self.prices = {}
        self.pricesUpdatedAt = None
        self.historicalPrices = {}      # k = (timestamp, currency), None when lookup failed
        self.pendingLookups = []
        self.generation = 0
        self.historicalDebouncer = utils.Debouncer(
            config.get("historicalDebounce", 0.5), self.flushHistorical, clock=clock)

    def refreshPrices(self):
        try:
            data = self.fetchJson(self.pricesUrl)
        except PriceFetchError as err:
            logger.warning(f"Keeping previous prices: {str(err)}")
            return False
        finally:
            self.pricesUpdatedAt = self.clock()
        if type(data) is not dict:
            logger.warning(f"Unexpected price response from {self.pricesUrl}")
            return False
        newPrices = {k: v for k, v in data.items() if k != "time" and isPrice(v)}
        changed = newPrices != self.prices
        self.prices = newPrices
        if changed: logger.debug(f"Bitcoin prices updated for {len(newPrices)} currencies")
        return changed

    def tick(self, now=None):
        if now is None: now = self.clock()
        refreshed = False
        if self.pricesUpdatedAt is None or self.pricesUpdatedAt + self.refreshInterval <= now:
            refreshed = self.refreshPrices()
        self.historicalDebouncer.poll(now)
        return refreshed

    def getPrice(self, currency=None):
        currency = currency or self.currency
        price = self.prices.get(currency)
        if not price: return None
        return price

    def convert(self, amountSats, currency=None):
        currency = currency or self.currency
        price = self.getPrice(currency)
        if price is None: return ""
        return formatFiat(satsToBtc(amountSats) * price, currency)

    def fetchHistoricalPrice(self, timestampSec, currency):
        key = (int(timestampSec), currency)
        if key in self.historicalPrices: return self.historicalPrices[key]
        price = None
        try:
            data = self.fetchJson(self.historicalUrl, {"currency": currency, "timestamp": int(timestampSec)})
            prices = data.get("prices") if type(data) is dict else None
            if type(prices) is list and len(prices) > 0 and type(prices[0]) is dict:
                price = prices[0].get(currency)
        except PriceFetchError as err:
            logger.warning(f"No historical price for {currency} at {timestampSec}: {str(err)}")
        if not isPrice(price):
            if price is not None: logger.warning(f"Unexpected historical price for {currency} at {timestampSec}: {price!r}")
            price = None
        self.historicalPrices[key] = price
        return self.historicalPrices[key]

    def convertHistorical(self, amountSats, timestampSec, currency=None):
        currency = currency or self.currency
        price = self.getPrice(currency)
        if price is None: return None
        historicalPrice = self.fetchHistoricalPrice(timestampSec, currency)
        if historicalPrice is None: return None
        btcAmount = satsToBtc(amountSats)
        currentAmount = btcAmount * price
        historicalAmount = btcAmount * historicalPrice
        percentValue = 0.0
        if historicalAmount != 0:
            percentValue = ((currentAmount - historicalAmount) / historicalAmount) * 100
        return HistoricalConversion(
            current=formatFiat(currentAmount, currency),
            historical=formatFiatValue(historicalAmount, currency),
            percentChange=formatPercentChange(percentValue),
            percentValue=percentValue,
            )

    def requestHistorical(self, amountSats, timestampSec, currency, callback):
        currency = currency or self.currency
        self.pendingLookups.append((self.generation, amountSats, timestampSec, currency, callback))
        self.historicalDebouncer.trigger()

    def flushHistorical(self):
        lookups = self.pendingLookups
        self.pendingLookups = []
        generation = self.generation
        for lookupGeneration, amountSats, timestampSec, currency, callback in lookups:
            if lookupGeneration != generation: continue
            # repeated (timestamp, currency) pairs are served from the cache
            conversion = self.convertHistorical(amountSats, timestampSec, currency)
            if self.generation != generation:
                logger.debug("Session changed during historical price lookups")
                return
            callback(conversion)

    def invalidate(self):
        self.generation += 1
        self.pendingLookups = []
        self.historicalDebouncer.cancel()
