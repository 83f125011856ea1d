"""AI invoker protocol.

Defines the single-call boundary to an external generative model.

Implementations can include:
- OpenAI-compatible chat completions (default)
- Any hosted or local model that can return JSON
- Scripted fakes for tests
"""

from typing import Protocol, runtime_checkable

from character_enrichment.entities import EntityContext
from character_enrichment.models import CacheCategory, EnrichmentPayload


@runtime_checkable
class AIInvoker(Protocol):
    """Protocol for AI model invocation.

    Invokers make exactly one call per invocation: no caching and no
    retries. Failures are raised as AIInvocationError carrying an ErrorKind,
    which drives the retry policy of the callers.
    """

    @property
    def model_name(self) -> str:
        """Return the name/identifier of the model."""
        ...

    async def invoke(self, category: CacheCategory, context: EntityContext) -> EnrichmentPayload:
        """Run one enrichment computation.

        Args:
            category: Which analysis to produce
            context: Entity data used to build the prompt

        Returns:
            A payload validated against the schema of the category

        Raises:
            AIInvocationError: classified failure
        """
        ...
