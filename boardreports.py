#!/usr/bin/env python3
import boto3
import boto3.session
import hashlib
import json
import logging
import os
import boardengine as engine
import boardfiles as files
import boardutils as utils

logger = logging.getLogger("zapboard")     # replaced by board.py
config = {}

recentNotifications = []
_recentNotificationLimit = 10
historicalFiat = {}            # k = zap record id

def recordNotification(notification):
    global recentNotifications
    recentNotifications.append(notification.asDict())
    recentNotifications = recentNotifications[-_recentNotificationLimit:]

def clearNotifications():
    global recentNotifications
    global historicalFiat
    recentNotifications = []
    historicalFiat = {}

def recordHistoricalFiat(record, conversion):
    historicalFiat[record.id] = {
        "current": conversion.current,
        "historical": conversion.historical,
        "change": conversion.percentChange,
        }

def getReportKey(sessionKey):
    # coordinates contain ':' which is awkward in file names and s3 keys
    return hashlib.sha256(str(sessionKey).encode()).hexdigest()[:32]

def getReportFilename(sessionKey):
    utils.makeFolderIfNotExists(files.reportsFolder)
    return f"{files.reportsFolder}{getReportKey(sessionKey)}.json"

def buildZapLines(zapEngine, records):
    lines = []
    for record in records:
        satsText, fiatText = zapEngine.formatAmount(record.amountSats)
        total = zapEngine.aggregator.totals.get(record.payerPubkey)
        lines.append({
            "id": record.id,
            "payerPubkey": record.payerPubkey,
            "displayName": total.displayName if total is not None else zapEngine.defaultName,
            "pictureUrl": total.pictureUrl if total is not None else zapEngine.defaultPicture,
            "comment": record.comment,
            "amountSats": record.amountSats,
            "sats": satsText,
            "fiat": fiatText,
            "historicalFiat": historicalFiat.get(record.id),
            "timestamp": record.timestampSec,
            })
    return lines

def buildSnapshot(zapEngine):
    session = zapEngine.session
    plans = zapEngine.plans if len(zapEngine.plans) > 0 else zapEngine.replan()
    totalSats = zapEngine.totalSats()
    satsText, fiatText = zapEngine.formatAmount(totalSats)
    return {
        "sessionKey": session.sessionKey,
        "isBacklogComplete": session.isBacklogComplete,
        "zapCount": len(session),
        "totalSats": totalSats,
        "total": {"sats": satsText, "fiat": fiatText},
        "leaderboard": [entry.asDict() for entry in zapEngine.leaderboard()],
        "panes": {pane: plan.asDict() for pane, plan in plans.items()},
        "zaps": buildZapLines(zapEngine, zapEngine.orderedRecords(engine.PANE_ACTIVITY)),
        "notifications": list(recentNotifications),
        }

def saveIfFileContentDifferent(filename, data):
    different = False
    if not os.path.exists(filename):
        different = True
    else:
        with open(filename) as f:
            fileContent = f.read()
        different = fileContent != data
    if different:
        with open(filename, "w") as f:
            f.write(data)
    return different

def makeSnapshotReport(zapEngine):
    sessionKey = zapEngine.session.sessionKey
    if sessionKey is None: return False
    destFile = getReportFilename(sessionKey)
    destData = json.dumps(buildSnapshot(zapEngine), indent=2)
    fileChanged = saveIfFileContentDifferent(destFile, destData)
    if fileChanged:
        logger.debug(f"Updated report at {destFile}")
        uploadToAWS(f"{getS3Folder()}/{getReportKey(sessionKey)}.json", destFile)
    return fileChanged

def isAWSEnabled():
    if "aws" not in config: return False
    if not all(k in config["aws"] for k in (
        "enabled",
        "s3Bucket",
        "aws_access_key_id",
        "aws_secret_access_key",
        "baseKey")):
        return False
    if not config["aws"]["enabled"]: return False
    return True

def getS3Folder():
    if not isAWSEnabled(): return ""
    return str(config["aws"]["baseKey"]).rstrip("/")

def getReportURL(sessionKey):
    if not isAWSEnabled(): return None
    s3Key = f"{getS3Folder()}/{getReportKey(sessionKey)}.json"
    s3Bucket = config["aws"]["s3Bucket"]
    return f"https://{s3Bucket}.s3.amazonaws.com/{s3Key}"

def uploadToAWS(s3Key, filename):
    if not isAWSEnabled():
        logger.debug(f"File {filename} not uploaded. AWS not enabled")
        return False
    s3Bucket = config["aws"]["s3Bucket"]
    mysession = boto3.session.Session(
        aws_access_key_id=config["aws"]["aws_access_key_id"],
        aws_secret_access_key=config["aws"]["aws_secret_access_key"])
    s3Client = mysession.client('s3')
    try:
        s3Client.upload_file(
            Filename=filename,
            Bucket=s3Bucket,
            Key=s3Key,
            ExtraArgs={'ContentType':"application/json", "CacheControl": "no-cache"}
            )
    except Exception as err:
        logger.warning(f"Error uploading {filename} to s3 bucket {s3Bucket}: {str(err)}")
        return False
    logger.debug(f"Updated https://{s3Bucket}.s3.amazonaws.com/{s3Key}")
    return True
