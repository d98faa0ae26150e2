"""Repositories for database operations.

Simple CRUD over the relational store. Each call opens its own session
scope; the order repository's status write is a versioned compare-and-set.
"""

from datetime import datetime, timezone

from sqlalchemy import func, select, update

from app.domain.entities import (
    FileRef,
    GeoPoint,
    Notification,
    Order,
    Payment,
    PrintConfig,
    Shop,
    ShopPricing,
    User,
    UserRole,
    from_paise,
    to_paise,
)
from app.domain.exceptions import ConcurrentUpdateError
from app.domain.state_machines import ACTIVE_ORDER_STATUSES, OrderStatus, PaymentStatus
from app.infrastructure.database import Database
from app.infrastructure.models import (
    NotificationModel,
    OrderModel,
    PaymentModel,
    ShopModel,
    UserModel,
)


def _aware(value: datetime) -> datetime:
    # SQLite drops tzinfo; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ============================================================================
# Mappers
# ============================================================================


def _to_user(model: UserModel) -> User:
    return User(
        id=model.id,
        name=model.name,
        email=model.email,
        phone=model.phone,
        role=UserRole(model.role),
    )


def _to_shop(model: ShopModel) -> Shop:
    return Shop(
        id=model.id,
        owner_id=model.owner_id,
        business_name=model.business_name,
        address=model.address,
        location=GeoPoint(lat=model.lat, lng=model.lng),
        pricing=ShopPricing.from_dict(model.pricing),
        is_active=model.is_active,
        created_at=_aware(model.created_at),
    )


def _to_order(model: OrderModel) -> Order:
    return Order(
        id=model.id,
        order_number=model.order_number,
        user_id=model.user_id,
        shop_id=model.shop_id,
        file=FileRef.from_dict(model.file),
        print_config=PrintConfig.from_dict(model.print_config),
        total_cost=from_paise(model.total_paise),
        status=OrderStatus(model.status),
        payment_method=model.payment_method,
        payment_status=model.payment_status,
        version=model.version,
        created_at=_aware(model.created_at),
        updated_at=_aware(model.updated_at),
    )


def _to_payment(model: PaymentModel) -> Payment:
    return Payment(
        id=model.id,
        order_id=model.order_id,
        amount=from_paise(model.amount_paise),
        provider_order_id=model.provider_order_id,
        provider_payment_id=model.provider_payment_id,
        status=PaymentStatus(model.status),
        created_at=_aware(model.created_at),
        updated_at=_aware(model.updated_at),
    )


def _to_notification(model: NotificationModel) -> Notification:
    return Notification(
        id=model.id,
        user_id=model.user_id,
        type=model.type,
        title=model.title,
        message=model.message,
        order_id=model.order_id,
        read=model.read,
        created_at=_aware(model.created_at),
    )


# ============================================================================
# Users & Shops
# ============================================================================


class UserRepository:
    """Repository for users."""

    def __init__(self, database: Database) -> None:
        self.database = database

    async def add(self, user: User) -> User:
        async with self.database.session() as session:
            session.add(
                UserModel(
                    id=user.id,
                    name=user.name,
                    email=user.email,
                    phone=user.phone,
                    role=user.role.value,
                )
            )
        return user

    async def get(self, user_id: str) -> User | None:
        async with self.database.session() as session:
            model = await session.get(UserModel, user_id)
            return _to_user(model) if model else None


class ShopRepository:
    """Repository for print shops."""

    def __init__(self, database: Database) -> None:
        self.database = database

    async def add(self, shop: Shop) -> Shop:
        async with self.database.session() as session:
            session.add(
                ShopModel(
                    id=shop.id,
                    owner_id=shop.owner_id,
                    business_name=shop.business_name,
                    address=shop.address,
                    lat=shop.location.lat,
                    lng=shop.location.lng,
                    pricing=shop.pricing.to_dict(),
                    is_active=shop.is_active,
                    created_at=shop.created_at,
                )
            )
        return shop

    async def get(self, shop_id: str) -> Shop | None:
        async with self.database.session() as session:
            model = await session.get(ShopModel, shop_id)
            return _to_shop(model) if model else None

    async def get_by_owner(self, owner_id: str) -> Shop | None:
        async with self.database.session() as session:
            result = await session.execute(select(ShopModel).where(ShopModel.owner_id == owner_id))
            model = result.scalar_one_or_none()
            return _to_shop(model) if model else None


# ============================================================================
# Orders
# ============================================================================


class OrderRepository:
    """Repository for print orders.

    Example usage:
        repo = OrderRepository(database)
        order = await repo.get(order_id)
        updated = await repo.update_status(
            order.id, OrderStatus.ACCEPTED, expected_version=order.version
        )
    """

    def __init__(self, database: Database) -> None:
        self.database = database

    async def add(self, order: Order) -> Order:
        async with self.database.session() as session:
            session.add(
                OrderModel(
                    id=order.id,
                    order_number=order.order_number,
                    user_id=order.user_id,
                    shop_id=order.shop_id,
                    file=order.file.to_dict(),
                    print_config=order.print_config.to_dict(),
                    status=order.status.value,
                    total_paise=to_paise(order.total_cost),
                    payment_method=order.payment_method,
                    payment_status=order.payment_status,
                    version=order.version,
                    created_at=order.created_at,
                    updated_at=order.updated_at,
                )
            )
        return order

    async def get(self, order_id: str) -> Order | None:
        async with self.database.session() as session:
            model = await session.get(OrderModel, order_id)
            return _to_order(model) if model else None

    async def update_status(
        self,
        order_id: str,
        status: OrderStatus,
        expected_version: int,
        now: datetime | None = None,
    ) -> Order:
        """Write a new status if nobody else wrote since ``expected_version``.

        Args:
            order_id: Order identifier.
            status: New status.
            expected_version: Version observed when the order was read.
            now: Update timestamp.

        Returns:
            The order as stored after the write.

        Raises:
            ConcurrentUpdateError: If the row's version no longer matches.
        """
        now = now or datetime.now(timezone.utc)
        async with self.database.session() as session:
            result = await session.execute(
                update(OrderModel)
                .where(OrderModel.id == order_id, OrderModel.version == expected_version)
                .values(status=status.value, version=expected_version + 1, updated_at=now)
            )
            if result.rowcount != 1:
                raise ConcurrentUpdateError("Order", order_id, expected_version)
            model = await session.get(OrderModel, order_id, populate_existing=True)
            return _to_order(model)

    async def set_payment_status(self, order_id: str, payment_status: str) -> None:
        async with self.database.session() as session:
            await session.execute(
                update(OrderModel)
                .where(OrderModel.id == order_id)
                .values(payment_status=payment_status, updated_at=datetime.now(timezone.utc))
            )

    async def count_recent_active(self, shop_id: str, since: datetime) -> int:
        """Count the shop's active orders created at or after ``since``."""
        async with self.database.session() as session:
            result = await session.execute(
                select(func.count())
                .select_from(OrderModel)
                .where(
                    OrderModel.shop_id == shop_id,
                    OrderModel.status.in_([s.value for s in ACTIVE_ORDER_STATUSES]),
                    OrderModel.created_at >= since,
                )
            )
            return int(result.scalar_one())

    async def list_for_user(
        self,
        user_id: str,
        status: OrderStatus | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Order], int]:
        return await self._list(OrderModel.user_id == user_id, status, page, limit)

    async def list_for_shop(
        self,
        shop_id: str,
        status: OrderStatus | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Order], int]:
        return await self._list(OrderModel.shop_id == shop_id, status, page, limit)

    async def _list(
        self,
        owner_clause,
        status: OrderStatus | None,
        page: int,
        limit: int,
    ) -> tuple[list[Order], int]:
        clauses = [owner_clause]
        if status:
            clauses.append(OrderModel.status == status.value)

        async with self.database.session() as session:
            total = (
                await session.execute(select(func.count()).select_from(OrderModel).where(*clauses))
            ).scalar_one()
            result = await session.execute(
                select(OrderModel)
                .where(*clauses)
                .order_by(OrderModel.created_at.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            return [_to_order(m) for m in result.scalars()], int(total)


# ============================================================================
# Payments
# ============================================================================


class PaymentRepository:
    """Repository for payments."""

    def __init__(self, database: Database) -> None:
        self.database = database

    async def add(self, payment: Payment) -> Payment:
        async with self.database.session() as session:
            session.add(
                PaymentModel(
                    id=payment.id,
                    order_id=payment.order_id,
                    provider_order_id=payment.provider_order_id,
                    provider_payment_id=payment.provider_payment_id,
                    amount_paise=to_paise(payment.amount),
                    status=payment.status.value,
                    created_at=payment.created_at,
                    updated_at=payment.updated_at,
                )
            )
        return payment

    async def get_by_order(self, order_id: str) -> Payment | None:
        async with self.database.session() as session:
            result = await session.execute(
                select(PaymentModel).where(PaymentModel.order_id == order_id)
            )
            model = result.scalar_one_or_none()
            return _to_payment(model) if model else None

    async def update(
        self,
        payment_id: str,
        status: PaymentStatus,
        provider_payment_id: str | None = None,
        provider_order_id: str | None = None,
    ) -> Payment:
        async with self.database.session() as session:
            model = await session.get(PaymentModel, payment_id)
            model.status = status.value
            if provider_payment_id is not None:
                model.provider_payment_id = provider_payment_id
            if provider_order_id is not None:
                model.provider_order_id = provider_order_id
            model.updated_at = datetime.now(timezone.utc)
            await session.flush()
            return _to_payment(model)


# ============================================================================
# Notifications
# ============================================================================


class NotificationRepository:
    """Repository for in-app notifications."""

    def __init__(self, database: Database) -> None:
        self.database = database

    async def add(self, notification: Notification) -> Notification:
        async with self.database.session() as session:
            session.add(
                NotificationModel(
                    id=notification.id,
                    user_id=notification.user_id,
                    type=notification.type,
                    title=notification.title,
                    message=notification.message,
                    order_id=notification.order_id,
                    read=notification.read,
                    created_at=notification.created_at,
                )
            )
        return notification

    async def get(self, notification_id: str) -> Notification | None:
        async with self.database.session() as session:
            model = await session.get(NotificationModel, notification_id)
            return _to_notification(model) if model else None

    async def list_for_user(self, user_id: str, limit: int = 50) -> list[Notification]:
        async with self.database.session() as session:
            result = await session.execute(
                select(NotificationModel)
                .where(NotificationModel.user_id == user_id)
                .order_by(NotificationModel.created_at.desc())
                .limit(limit)
            )
            return [_to_notification(m) for m in result.scalars()]

    async def mark_read(self, notification_id: str) -> Notification:
        async with self.database.session() as session:
            model = await session.get(NotificationModel, notification_id)
            model.read = True
            await session.flush()
            return _to_notification(model)

    async def mark_all_read(self, user_id: str) -> int:
        async with self.database.session() as session:
            result = await session.execute(
                update(NotificationModel)
                .where(NotificationModel.user_id == user_id, NotificationModel.read.is_(False))
                .values(read=True)
            )
            return result.rowcount

    async def unread_count(self, user_id: str) -> int:
        async with self.database.session() as session:
            result = await session.execute(
                select(func.count())
                .select_from(NotificationModel)
                .where(NotificationModel.user_id == user_id, NotificationModel.read.is_(False))
            )
            return int(result.scalar_one())
