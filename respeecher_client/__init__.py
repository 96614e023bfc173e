"""Respeecher API client: async Python interface to the Respeecher gateway.

WHY: Respeecher converts recorded speech into another voice. Its gateway
exposes projects, phrases, recordings, voice models, calibrations, and TTS
behind a cookie + CSRF-token session. This package wraps that API in a
typed async client with persisted sessions and a classified error model.

HOW: Three layers: config (endpoints, storage paths), storage (token and
cookie persistence), and api (models, request bodies, errors, client).
A small CLI sits on top for scripting.

RULES:
- All HTTP calls go through RespeecherClient
- Operations return Result objects; failures are ApiError values
"""

__version__ = "0.1.0"
