import redis

from app.utils.retry import redis_retry
from app.utils.settings import CHECKOUT_CLAIM_TTL_SECONDS, REDIS_URL
from app.utils.logging import get_logger

logger = get_logger(__name__)

#LUA porownaj i usun, atomicity
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""

#redis wykonuje lua atomowo, nie mozna wcisnac sie miedzy GET a DEL
#wiec zwalnia tylko ten kto zalozyl claim


class IdempotencyService:
    """
    Claim klucza idempotencji checkoutu w redisie.
    - claim: SET NX EX, drugi rownolegly checkout z tym samym kluczem dostaje False
    - release: porownaj wlasciciela i usun (lua)
    Claim wygasa sam, zadna blokada nie jest trzymana dluzej niz TTL.
    """

    def __init__(self, client: redis.Redis | None = None, url: str | None = None, ttl: int = CHECKOUT_CLAIM_TTL_SECONDS):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )
        self.ttl = ttl

    @staticmethod
    def _key(idempotency_key: str) -> str:
        return f"checkout:{idempotency_key}:claim"

    @redis_retry()
    def claim(self, idempotency_key: str, owner: str) -> bool:
        key = self._key(idempotency_key)
        logger.info(f"Claim {key} for {owner}")
        #SET checkout:abc:claim "user-1" NX EX 30
        return bool(
            self.redis.set(
                name=key,
                value=owner,
                nx=True,
                ex=self.ttl,
            )
        )

    @redis_retry()
    def release(self, idempotency_key: str, owner: str) -> bool:
        key = self._key(idempotency_key)
        logger.info(f"Release {key} for {owner}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, owner)
        return bool(res)
