# client_example.py - post a sample domain-check event and print the top domains
import os
import sys
import time

import requests
from requests.exceptions import RequestException, ConnectionError, Timeout

SERVER = os.environ.get("AUDIT_LOG_SERVER", "http://127.0.0.1:5000")


def send_event(domain, results=None, server=SERVER, max_attempts=3, timeout=6):
    """
    POST one event to /log. Connection errors and timeouts are retried with a
    linear backoff; an HTTP error response is returned to the caller as is.
    Returns the response, or None if every attempt failed to connect.
    """
    url = f"{server.rstrip('/')}/log"
    body = {"domain": domain, "results": results or {}}
    for attempt in range(1, max_attempts + 1):
        try:
            resp = requests.post(url, json=body, timeout=timeout)
            print(f"[client] POST {url} attempt {attempt} -> status {resp.status_code}")
            return resp
        except (ConnectionError, Timeout) as e:
            print(f"[client] attempt {attempt} -> connection error/timeout: {e}")
            if attempt >= max_attempts:
                return None
            time.sleep(0.5 * attempt)
        except RequestException as e:
            print(f"[client] attempt {attempt} -> request exception: {e}")
            return None
    return None


def fetch_stats(server=SERVER, limit=None, timeout=6):
    params = {"limit": limit} if limit else None
    resp = requests.get(f"{server.rstrip('/')}/stats", params=params, timeout=timeout)
    resp.raise_for_status()
    return resp.json()


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    domain = argv[0] if argv else "example.com"

    resp = send_event(domain, results={"mx": True, "spf": "pass", "dmarc": None})
    if resp is None or resp.status_code != 200:
        print("[client] event was not accepted")
        return 1

    for row in fetch_stats():
        print(f"{row['count']:>6}  {row['domain']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
