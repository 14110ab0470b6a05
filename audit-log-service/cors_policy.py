# cors_policy.py
from dataclasses import dataclass

from flask import request
from flask_cors import CORS

import config


@dataclass(frozen=True)
class CorsPolicy:
    """Static CORS policy. Only controls browser-visible headers, never whether a request runs."""

    allowed_origins: frozenset
    allowed_methods: frozenset
    allowed_headers: frozenset
    max_age: int = 86400

    @classmethod
    def from_config(cls):
        return cls(
            allowed_origins=frozenset(config.ALLOWED_ORIGINS),
            allowed_methods=frozenset(config.ALLOWED_METHODS),
            allowed_headers=frozenset(config.ALLOWED_HEADERS),
        )

    @property
    def origins(self):
        if "*" in self.allowed_origins:
            return "*"
        return sorted(self.allowed_origins)

    def apply(self, app):
        app.before_request(_answer_preflight)
        CORS(
            app,
            resources={r"/*": {"origins": self.origins}},
            send_wildcard=self.origins == "*",
            methods=sorted(self.allowed_methods),
            allow_headers=sorted(self.allowed_headers),
            max_age=self.max_age,
        )
        app.extensions["cors_policy"] = self
        return app


def _answer_preflight():
    # any path, before routing errors are raised and before any view runs.
    # flask-cors only adds Access-Control-Allow-* for allowed origins, so a
    # disallowed origin gets a bare 204 and the browser blocks the real request.
    if request.method == "OPTIONS":
        return "", 204
    return None
