# Lightweight in-memory limiter for failed login attempts
import time
import os
import logging
from collections import defaultdict, deque

logger = logging.getLogger(__name__)


class LoginRateLimiter:
    def __init__(self, enabled=None, max_fails=None, window_sec=None):
        self.buckets = defaultdict(deque)
        if enabled is None:
            enabled = os.environ.get('LOGIN_RATELIMIT_ENABLED', '1') == '1'
        self.enabled = enabled
        self.max_fails = max_fails if max_fails is not None else int(os.environ.get('LOGIN_RATELIMIT_MAX_FAILS', '5'))
        self.window_sec = window_sec if window_sec is not None else int(os.environ.get('LOGIN_RATELIMIT_WINDOW_SEC', '60'))

    def _get_client_ip(self, request):
        forwarded = request.headers.get('X-Forwarded-For')
        return forwarded.split(',')[0].strip() if forwarded else (request.remote_addr or 'unknown')

    def _keys(self, request, handle):
        client_ip = self._get_client_ip(request)
        return [
            ('ip', f"ip::{client_ip}"),
            ('iphandle', f"iphandle::{client_ip}::{(handle or '').lower()}"),
        ]

    def _cleanup_bucket(self, bucket, now):
        cutoff = now - self.window_sec
        while bucket and bucket[0] < cutoff:
            bucket.popleft()

    def check_rate_limit(self, request, handle):
        """Return seconds until retry when the caller is over the limit, else None"""
        if not self.enabled:
            return None

        now = time.time()
        for key_type, key in self._keys(request, handle):
            bucket = self.buckets[key]
            self._cleanup_bucket(bucket, now)
            if len(bucket) >= self.max_fails:
                retry_after = max(1, int(bucket[0] + self.window_sec - now))
                self._emit_diagnostic('hit', key_type, len(bucket))
                return retry_after
        return None

    def record_failed_attempt(self, request, handle):
        if not self.enabled:
            return

        now = time.time()
        for key_type, key in self._keys(request, handle):
            bucket = self.buckets[key]
            self._cleanup_bucket(bucket, now)
            bucket.append(now)
            self._emit_diagnostic('recorded_fail', key_type, len(bucket))

    def clear_user_bucket(self, request, handle):
        if not self.enabled:
            return

        key_type, key = self._keys(request, handle)[1]
        if key in self.buckets:
            del self.buckets[key]
            self._emit_diagnostic('cleared_on_success', key_type, 0)

    def reset(self):
        self.buckets.clear()

    def _emit_diagnostic(self, event, key_type, hits):
        logger.info(f"login_rate_limit event={event} key_type={key_type} window={self.window_sec} max_fails={self.max_fails} hits={hits}")


login_rate_limiter = LoginRateLimiter()
