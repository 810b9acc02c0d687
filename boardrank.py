#!/usr/bin/env python3

UNRANKED = None

def rankOf(newAmount, allAmountsInSession):
    # equal amounts share a rank: position among the distinct values
    uniqueAmounts = sorted(set(list(allAmountsInSession) + [newAmount]), reverse=True)
    if newAmount not in uniqueAmounts: return UNRANKED
    return uniqueAmounts.index(newAmount) + 1
