from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol, TypeVar

from .config import Settings
from .discord_notifier import DiscordWebhook
from .enrichment import ImageFetcher, SpotPriceResolver
from .filters import EventFilter, build_event_filter
from .formatting import compose_discord_message, compose_social_post
from .tensor_client import SubscriptionError, TensorClient
from .timeouts import call_with_timeout
from .twitter_notifier import TwitterClient
from .types import (
    CollectionStats,
    DiscordMessage,
    ImageAsset,
    SocialPost,
    TransactionEvent,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TransactionSource(Protocol):
    async def connect(self) -> None: ...

    async def subscribe_to_slug(self, slug: str) -> None: ...

    async def get_collection_stats(self, slug: str) -> CollectionStats: ...

    def transactions(self) -> AsyncIterator[TransactionEvent]: ...

    @property
    def active_slugs(self) -> frozenset[str]: ...

    async def close(self) -> None: ...


class PriceSource(Protocol):
    async def get_price(self, asset: str = "solana", fiat: str = "usd") -> float: ...

    async def close(self) -> None: ...


class ImageSource(Protocol):
    async def fetch(self, image_uri: str) -> ImageAsset | None: ...

    async def close(self) -> None: ...


class DiscordSink(Protocol):
    async def send(self, message: DiscordMessage) -> None: ...

    async def close(self) -> None: ...


class SocialSink(Protocol):
    async def upload_media(self, data: bytes, mime: str) -> str: ...

    async def post(self, text: str, media_ids: list[str] | None = None) -> str: ...

    async def close(self) -> None: ...


class PipelineState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"


@dataclass
class Metrics:
    events_seen: int = 0
    events_skipped: int = 0
    events_failed: int = 0
    notifications_sent: int = 0
    delivery_failures: int = 0


class SalesPipeline:
    """Subscribes to Tensor transactions and republishes accepted ones.

    Every event is handled in its own task; handlers share no state apart
    from the health counters, so events may finish out of order.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        source: TransactionSource | None = None,
        prices: PriceSource | None = None,
        images: ImageSource | None = None,
        discord_sinks: Sequence[DiscordSink] | None = None,
        social_sink: SocialSink | None = None,
        event_filter: EventFilter | None = None,
    ) -> None:
        timeout = settings.request_timeout_seconds
        self.settings = settings
        self.metrics = Metrics()
        self.state = PipelineState.DISCONNECTED

        self.source = source or TensorClient(
            settings.tensor_api_url,
            settings.tensor_ws_url,
            settings.tensor_api_key,
            timeout=timeout,
        )
        self.prices = prices or SpotPriceResolver(settings.coingecko_api_base, timeout=timeout)
        self.images = images or ImageFetcher(timeout=timeout)
        if discord_sinks is None:
            discord_sinks = [DiscordWebhook(url, timeout=timeout) for url in settings.discord_webhooks]
        self.discord_sinks = list(discord_sinks)
        if social_sink is None and settings.twitter is not None:
            social_sink = TwitterClient(settings.twitter)
        self.social_sink = social_sink
        self.event_filter = event_filter or build_event_filter(settings)

        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def subscribed_slugs(self) -> frozenset[str]:
        """Slugs the source still holds a live subscription for."""
        if self.state is not PipelineState.SUBSCRIBED:
            return frozenset()
        return frozenset(self.source.active_slugs)

    async def _bounded(
        self, factory: Callable[[], Awaitable[T]], label: str, retries: int = 1
    ) -> T:
        return await call_with_timeout(
            factory,
            self.settings.request_timeout_seconds,
            retries=retries,
            label=label,
        )

    async def start(self) -> None:
        """Connect upstream and subscribe every configured slug.

        Slugs are subscribed independently; a failed slug is logged and the
        rest stay subscribed. Raises :class:`SubscriptionError` when the
        connection fails or no slug could be subscribed.
        """
        self.state = PipelineState.CONNECTING
        try:
            await self._bounded(self.source.connect, "connect", retries=0)
        except Exception:
            self.state = PipelineState.DISCONNECTED
            raise

        slugs = list(dict.fromkeys(self.settings.slugs))
        results = await asyncio.gather(
            *(
                self._bounded(
                    lambda slug=slug: self.source.subscribe_to_slug(slug),
                    f"subscribe {slug}",
                    retries=0,
                )
                for slug in slugs
            ),
            return_exceptions=True,
        )

        subscribed: list[str] = []
        for slug, result in zip(slugs, results):
            if isinstance(result, BaseException):
                logger.error("Failed to subscribe to %s: %r", slug, result)
            else:
                subscribed.append(slug)

        if not subscribed:
            self.state = PipelineState.DISCONNECTED
            raise SubscriptionError(f"Could not subscribe to any of {slugs}")

        self.state = PipelineState.SUBSCRIBED
        logger.info("Subscribed to %d/%d slugs: %s", len(subscribed), len(slugs), ", ".join(subscribed))

    async def run(self) -> None:
        health_task = asyncio.create_task(self._health_loop())
        try:
            async for event in self.source.transactions():
                self.metrics.events_seen += 1
                task = asyncio.create_task(self._process(event))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
            logger.warning("Transaction stream ended")
        except Exception:
            logger.exception("Transaction stream failed")
            raise
        finally:
            self.state = PipelineState.DISCONNECTED
            health_task.cancel()
            await asyncio.gather(health_task, *self._tasks, return_exceptions=True)
            await self.close()

    async def close(self) -> None:
        await self.source.close()
        await self.prices.close()
        await self.images.close()
        for sink in self.discord_sinks:
            await sink.close()
        if self.social_sink is not None:
            await self.social_sink.close()

    async def _process(self, event: TransactionEvent) -> None:
        try:
            await self.handle_event(event)
        except Exception:
            self.metrics.events_failed += 1
            logger.exception("Abandoned transaction %s", event.transaction.tx_id)

    async def handle_event(self, event: TransactionEvent) -> bool:
        """Filter, enrich, compose and deliver one event.

        Returns ``False`` when the filter skipped the event. Filter, stats and
        spot-price errors propagate; delivery errors never do.
        """
        tx = event.transaction
        mint = event.mint
        logger.info(
            "New %s transaction for %s (%s) tx=%s slug=%s image=%s buyer=%s seller=%s gross=%s",
            tx.tx_type,
            mint.name,
            mint.onchain_id,
            tx.tx_id,
            event.slug,
            mint.image_uri,
            tx.buyer_id,
            tx.seller_id,
            tx.gross_amount,
        )

        if not self.event_filter.accepts(event):
            self.metrics.events_skipped += 1
            logger.info("Skipped %s transaction %s for %s", tx.tx_type, tx.tx_id, mint.onchain_id)
            return False

        logger.info("Accepted %s transaction %s for %s", tx.tx_type, tx.tx_id, mint.onchain_id)

        stats, image, spot_price = await self._enrich(event)

        discord_message = compose_discord_message(
            event, stats, image, spot_price, timestamp=datetime.now(timezone.utc)
        )
        social_post = compose_social_post(event, stats, image, spot_price)

        await self._fan_out(event, discord_message, social_post)
        return True

    async def _enrich(self, event: TransactionEvent) -> tuple[CollectionStats, ImageAsset | None, float]:
        stats, image, spot_price = await asyncio.gather(
            self._bounded(
                lambda: self.source.get_collection_stats(event.slug), f"stats {event.slug}"
            ),
            self._fetch_image(event.mint.image_uri),
            self._bounded(lambda: self.prices.get_price("solana", "usd"), "spot price"),
            return_exceptions=True,
        )

        if isinstance(stats, BaseException):
            raise stats
        if isinstance(spot_price, BaseException):
            raise spot_price
        if isinstance(image, BaseException):
            logger.warning(
                "Image fetch failed for %s (%s), using URL thumbnail: %r",
                event.mint.onchain_id,
                event.mint.image_uri,
                image,
            )
            image = None
        return stats, image, spot_price

    async def _fetch_image(self, image_uri: str) -> ImageAsset | None:
        if not image_uri:
            return None
        return await self._bounded(lambda: self.images.fetch(image_uri), "image fetch")

    async def _fan_out(
        self,
        event: TransactionEvent,
        discord_message: DiscordMessage,
        social_post: SocialPost,
    ) -> None:
        labels: list[str] = []
        deliveries: list[Awaitable[object]] = []
        for index, sink in enumerate(self.discord_sinks):
            labels.append(f"discord[{index}]")
            deliveries.append(
                self._bounded(lambda sink=sink: sink.send(discord_message), f"discord[{index}]")
            )
        if self.social_sink is not None:
            labels.append("twitter")
            deliveries.append(self._send_social(self.social_sink, social_post))

        results = await asyncio.gather(*deliveries, return_exceptions=True)
        for label, result in zip(labels, results):
            if isinstance(result, BaseException):
                self.metrics.delivery_failures += 1
                logger.error(
                    "Delivery to %s failed for tx %s: %r", label, event.transaction.tx_id, result
                )
            else:
                self.metrics.notifications_sent += 1
                logger.info("Delivered tx %s to %s", event.transaction.tx_id, label)

    async def _send_social(self, sink: SocialSink, post: SocialPost) -> None:
        media_ids: list[str] = []
        image = post.image
        if image is not None:
            try:
                media_id = await self._bounded(
                    lambda: sink.upload_media(image.data, image.mime), "twitter media upload"
                )
                media_ids = [media_id]
            except Exception as exc:
                logger.warning("Twitter media upload failed, posting without media: %r", exc)

        await self._bounded(lambda: sink.post(post.text, media_ids), "tweet")

    async def _health_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.health_log_interval_seconds)
            logger.info(
                (
                    "health state=%s slugs=%d events_seen=%d skipped=%d failed=%d "
                    "notifications_sent=%d delivery_failures=%d"
                ),
                self.state.value,
                len(self.subscribed_slugs),
                self.metrics.events_seen,
                self.metrics.events_skipped,
                self.metrics.events_failed,
                self.metrics.notifications_sent,
                self.metrics.delivery_failures,
            )
