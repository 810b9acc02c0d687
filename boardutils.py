#!/usr/bin/env python3
import bech32
import datetime
import math
import os
import sys
import time

def bech32ToHex(bech32Input):
    hrp, e2 = bech32.bech32_decode(bech32Input)
    if hrp is None: return ""
    tlv_bytes = bech32.convertbits(e2, 5, 8)[:-1]
    if len(tlv_bytes) > 32:
        tlv_length = tlv_bytes[1]
        tlv_value = tlv_bytes[2:tlv_length+2]
        hexOutput = bytes(tlv_value).hex()
    else:
        hexOutput = bytes(tlv_bytes).hex()
    return hexOutput

def hexToBech32(hexInput, hrp):
    b = bytes.fromhex(hexInput)
    bits = bech32.convertbits(b,8,5)
    bech32output = bech32.bech32_encode(hrp, bits)
    return bech32output

def isHex(s):
    return set(s).issubset(set('abcdefABCDEF0123456789'))

def normalizeToHex(v):
    if len(v) == 0: return ""
    if str(v).startswith("nostr:"): v = v[6:]
    if str(v).startswith("n"): v = bech32ToHex(v)
    if isHex(v): return v.lower()
    return None

def isCoordinate(v):
    # live events are addressed as kind:pubkey:identifier
    parts = str(v).split(":", 2)
    if len(parts) != 3: return False
    if not parts[0].isdigit(): return False
    return len(parts[1]) == 64 and isHex(parts[1])

def normalizeTargetRef(v):
    # returns the tag letter to filter receipts by and the tag value
    if v is None: return None, None
    v = str(v).strip()
    if v.startswith("nostr:"): v = v[6:]
    if isCoordinate(v):
        # receipt a tags carry the pubkey as lowercase hex
        kind, pubkey, identifier = v.split(":", 2)
        return "a", f"{kind}:{pubkey.lower()}:{identifier}"
    h = normalizeToHex(v)
    if h is not None and len(h) == 64: return "e", h
    return None, None

def getCommandArg(p):
    b = False
    v = None
    l = str(p).lower()
    for a in sys.argv:
        if b:
            v = a
            b = False
        elif f"--{l}" == str(a).lower():
            b = True
    return v

def getTimes(aDate=None):
    theDate = aDate
    if aDate is None: theDate = datetime.datetime.now(datetime.timezone.utc)
    secTime = int(theDate.timestamp())
    isoTime = datetime.datetime.fromtimestamp(secTime, datetime.timezone.utc).replace(tzinfo=None).isoformat(timespec="seconds")
    return secTime, isoTime

def makeFolderIfNotExists(path):
    if not os.path.exists(path): os.makedirs(path)

def numberWithCommas(x):
    return f"{int(x):,}"

def roundHalfUp(x):
    return int(math.floor(x + 0.5))

class Debouncer:
    """Deadline based debounce driven from the process loop.

    trigger() pushes the deadline out by delaySeconds. poll() runs the wrapped
    function once the deadline passes, or once maxWait seconds have gone by
    since the first trigger of a burst so a steady stream still fires.
    Everything runs on the caller's thread.
    """

    def __init__(self, delaySeconds, func, maxWait=None, clock=time.monotonic):
        self.delaySeconds = delaySeconds
        self.func = func
        self.maxWait = maxWait if maxWait is not None else delaySeconds * 4
        self.clock = clock
        self.deadline = None
        self.firstTrigger = None

    @property
    def pending(self):
        return self.deadline is not None

    def trigger(self):
        now = self.clock()
        if self.firstTrigger is None: self.firstTrigger = now
        self.deadline = now + self.delaySeconds

    def cancel(self):
        self.deadline = None
        self.firstTrigger = None

    def poll(self, now=None):
        if self.deadline is None: return False
        if now is None: now = self.clock()
        if now < self.deadline and now - self.firstTrigger < self.maxWait: return False
        self.cancel()
        self.func()
        return True

    def flush(self):
        if self.deadline is None: return False
        self.cancel()
        self.func()
        return True
