#!/usr/bin/env python3
import json
import logging
import os
import boardutils as utils

logger = logging.getLogger("zapboard")     # replaced by board.py

dataFolder = "data/"
reportsFolder = f"{dataFolder}reports/"
logFolder = f"{dataFolder}logs/"
configFilename = f"{dataFolder}boardconfig.json"
sampleConfigFilename = "sample-boardconfig.json"

def makeFolders():
    utils.makeFolderIfNotExists(dataFolder)
    utils.makeFolderIfNotExists(reportsFolder)
    utils.makeFolderIfNotExists(logFolder)

def loadJsonFile(filename, default=None):
    if filename is None: return default
    if not os.path.exists(filename): return default
    with open(filename) as f:
        return(json.load(f))

def getConfig(filename):
    c = utils.getCommandArg("config") # allow overriding default filename
    if c is not None: filename = c
    logger.debug(f"Loading config from {filename}")
    if not os.path.exists(filename):
        logger.warning(f"Config file does not exist at {filename}")
        return {}
    return loadJsonFile(filename, {})

def getConfigSection(config, name):
    section = config[name] if name in config else None
    if type(section) is not dict: return {}
    return section
