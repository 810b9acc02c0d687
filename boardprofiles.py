#!/usr/bin/env python3
from dataclasses import dataclass
import json
import logging

logger = logging.getLogger("zapboard")     # replaced by board.py

DEFAULT_NAME = "Anonymous"
DEFAULT_PICTURE = "/live/images/gradient_color.gif"

class ProfileParseError(Exception):
    pass

@dataclass(frozen=True)
class Profile:
    name: str = DEFAULT_NAME
    picture: str = DEFAULT_PICTURE
    createdAt: int = 0

def getDisplayName(profile, defaultName=DEFAULT_NAME):
    if profile is None: return defaultName
    for k in ("display_name", "displayName", "name"):
        if k in profile and type(profile[k]) is str and len(profile[k].strip()) > 0:
            return profile[k].strip()
    return defaultName

def getPicture(profile, defaultPicture=DEFAULT_PICTURE):
    if profile is None: return defaultPicture
    picture = profile.get("picture")
    if type(picture) is not str or len(picture.strip()) == 0: return defaultPicture
    return picture.strip()

def loadProfileContent(content):
    try:
        profile = json.loads(content)
    except (TypeError, ValueError) as err:
        raise ProfileParseError(f"profile content is not json: {str(err)}")
    if type(profile) is not dict:
        raise ProfileParseError("profile content is not an object")
    return profile

def parseProfileContent(content, createdAt=0, defaultName=DEFAULT_NAME, defaultPicture=DEFAULT_PICTURE):
    try:
        profile = loadProfileContent(content)
    except ProfileParseError as err:
        logger.warning(f"Using default name and picture: {str(err)}")
        profile = None
    return Profile(
        name=getDisplayName(profile, defaultName),
        picture=getPicture(profile, defaultPicture),
        createdAt=int(createdAt or 0),
        )
