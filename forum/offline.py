"""Offline response source: canned lines with simulated latency, no network."""

import asyncio
import logging
import random
from collections.abc import Mapping

from forum.errors import UnknownIdentityError
from forum.models import Identity

logger = logging.getLogger(__name__)

CANNED_RESPONSES: dict[Identity, tuple[str, ...]] = {
    Identity.GROK: (
        "That's an interesting point. Building on that, we should consider the implications for scalability.",
        "I agree. My analysis suggests a phased approach would be most effective.",
        "Let's not forget the user experience aspect. How will this impact the end-user?",
        "A radical idea, but it might just work. We need more data to be sure.",
        "I have a slightly different perspective. What if we approached it from a security-first standpoint?",
    ),
    Identity.OPENAI: (
        "Based on the provided context, the logical next step is to outline a clear project plan.",
        "Let's summarize the key takeaways so far. One, we need a solution. Two, it must be efficient. "
        "Three, it must be secure.",
        "Considering the previous arguments, I propose we create a proof-of-concept to test this hypothesis.",
        "It seems we have a consensus on the core problem. The solution, however, is still up for debate.",
        "From a data analysis perspective, we should prioritize the features that offer the most value to the user.",
    ),
    Identity.DEEPSEEK: (
        "Digging deeper into the technical details, the choice of database will be critical for performance.",
        "My deep analysis of the problem suggests an underlying issue we haven't addressed yet.",
        "Let's explore the long-term maintenance costs associated with this solution.",
        "I've cross-referenced this with several case studies. The success rate is promising if we follow "
        "best practices.",
        "I recommend a thorough code review before proceeding. We need to ensure quality from the start.",
    ),
    Identity.ZAI: (
        "Thinking outside the box, what if we leveraged machine learning to predict user behavior?",
        "A creative solution is needed here. Let's brainstorm some unconventional ideas.",
        "This problem requires a futuristic outlook. How will this solution hold up in five years?",
        "Let's pivot slightly. The real opportunity lies in the data we can collect.",
        "My predictive models indicate a high probability of success with this strategy. Let's move forward.",
    ),
}


class OfflineResponder:
    """Picks a canned line per identity after a short randomized pause."""

    def __init__(
        self,
        lines: Mapping[Identity, tuple[str, ...]] = CANNED_RESPONSES,
        delay_range: tuple[float, float] = (0.5, 2.0),
        rng: random.Random | None = None,
    ) -> None:
        low, high = delay_range
        if low < 0 or high < low:
            raise ValueError(f"Invalid offline delay range: {delay_range}")
        self._lines = {k: v for k, v in lines.items() if v}
        self._delay_range = (low, high)
        self._rng = rng or random.Random()

    def knows(self, identity: Identity) -> bool:
        return identity in self._lines

    async def reply(self, identity: Identity) -> str:
        if identity not in self._lines:
            raise UnknownIdentityError(identity.value, "no offline responses configured")
        delay = self._rng.uniform(*self._delay_range)
        await asyncio.sleep(delay)
        line = self._rng.choice(self._lines[identity])
        logger.debug("Offline %s reply after %.2fs", identity.value, delay)
        return line
