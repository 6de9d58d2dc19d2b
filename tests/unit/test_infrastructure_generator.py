"""Tests for the infrastructure layer generator and the code it produces."""

import importlib
import json

import httpx
import pytest

from layergen.core.errors import SchemaError
from layergen.core.validator import validate
from layergen.generate import GenerationContext, InfrastructureGenerator
from layergen.generate.infrastructure import table_name


def context_for(*raws):
    specs = {spec.class_name: spec for spec in map(validate, raws)}
    return GenerationContext(specs=specs)


class TestGeneratedSource:
    """Tests for the generated module text."""

    @pytest.mark.parametrize(
        "class_name,table",
        [("CartModel", "carts"), ("OrderLineRecord", "order_lines"), ("Category", "categories")],
    )
    def test_table_name(self, class_name, table):
        spec = validate({"class_name": class_name, "layer": "infrastructure/model", "attributes": ["id: int"]})
        assert table_name(spec) == table

    def test_model_without_attributes(self):
        raw = {"class_name": "EmptyModel", "layer": "infrastructure/model"}
        with pytest.raises(SchemaError, match="at least one attribute"):
            InfrastructureGenerator(context_for(raw)).generate(validate(raw))

    def test_unknown_storage(self, batch_item):
        raw = batch_item("CartRepository")
        raw["metadata"]["storage"] = "redis"
        with pytest.raises(SchemaError, match="unknown storage 'redis'"):
            InfrastructureGenerator(context_for(raw)).generate(validate(raw))

    def test_sqlalchemy_storage_needs_a_session(self, batch_item):
        raw = batch_item("CartRepository")
        raw["metadata"]["storage"] = "sqlalchemy"
        with pytest.raises(SchemaError, match="needs a session attribute"):
            InfrastructureGenerator(context_for(raw)).generate(validate(raw))

    def test_session_attribute_selects_sqlalchemy(self, cart_batch, batch_item):
        raw = batch_item("CartRepository")
        raw["attributes"] = ["session: AsyncSession"]
        cart_batch = [item for item in cart_batch if item["class_name"] != "CartRepository"] + [raw]
        context = context_for(*cart_batch)
        result = InfrastructureGenerator(context).generate(context.spec_for("CartRepository"))
        source = result.files[result.code_path]
        assert "from sqlalchemy.ext.asyncio import AsyncSession" in source
        assert "await self._session.merge(self._to_model(cart, id=user_id))" in source
        compile(source, result.code_path, "exec")

    def test_port_methods_are_merged_in(self, cart_batch):
        context = context_for(*cart_batch)
        result = InfrastructureGenerator(context).generate(context.spec_for("CartRepository"))
        source = result.files[result.code_path]
        assert "class CartRepository(ICartRepository):" in source
        assert "async def get_cart(self, user_id: str) -> Cart | None:" in source
        assert "async def save_cart(self, user_id: str, cart: Cart) -> None:" in source

    def test_adapter_path_parameters(self, cart_batch):
        context = context_for(*cart_batch)
        result = InfrastructureGenerator(context).generate(context.spec_for("StripePaymentGateway"))
        source = result.files[result.code_path]
        assert 'f"/orders/{order_id}/charges"' in source
        assert 'json=to_jsonable({"amount": amount})' in source

    def test_generated_sources_compile(self, cart_batch):
        context = context_for(*cart_batch)
        generator = InfrastructureGenerator(context)
        for name in ("CartModel", "CartRepository", "StripePaymentGateway"):
            for path, content in generator.generate(context.spec_for(name)).files.items():
                compile(content, path, "exec")


# =============================================================================
# Generated runtime behaviour
# =============================================================================


class TestGeneratedModel:
    """Tests for the generated CartModel."""

    def test_table_layout(self, cart_app):
        table = importlib.import_module("app.infrastructure.models.cart_model").CartModel.__table__
        assert table.name == "carts"
        assert [column.name for column in table.columns] == ["id", "user_id", "created_at"]
        assert [column.name for column in table.primary_key.columns] == ["id"]

    def test_foreign_key_by_naming_convention(self, cart_app):
        table = importlib.import_module("app.infrastructure.models.cart_model").CartModel.__table__
        (foreign_key,) = table.columns["user_id"].foreign_keys
        assert foreign_key.target_fullname == "users.id"
        assert foreign_key.ondelete == "RESTRICT"


class TestGeneratedRepository:
    """Tests for the generated in-memory CartRepository."""

    @pytest.fixture
    def repository(self, cart_app):
        return importlib.import_module("app.infrastructure.repositories.cart_repository").CartRepository()

    @pytest.fixture
    def domain_errors(self, cart_app):
        return importlib.import_module("app.domain.errors")

    def test_implements_port(self, repository):
        port = importlib.import_module("app.application.interfaces.cart_repository").ICartRepository
        assert isinstance(repository, port)

    @pytest.mark.asyncio
    async def test_save_then_get_returns_a_copy(self, repository):
        cart_module = importlib.import_module("app.domain.entities.cart")
        cart = cart_module.Cart()
        cart.add_item("p1", 2)

        await repository.save_cart(user_id="u1", cart=cart)
        cart.add_item("p1", 5)
        loaded = await repository.get_cart("u1")

        assert loaded is not cart
        assert loaded.get_items() == [cart_module.CartItem(product_id="p1", quantity=2)]

    @pytest.mark.asyncio
    async def test_missing_cart_is_none(self, repository):
        assert await repository.get_cart("nobody") is None

    @pytest.mark.asyncio
    async def test_empty_key_is_rejected(self, repository, domain_errors):
        with pytest.raises(domain_errors.ValidationError) as exc_info:
            await repository.get_cart("")
        assert exc_info.value.field == "user_id"

    @pytest.mark.asyncio
    async def test_missing_entity_is_rejected(self, repository, domain_errors):
        with pytest.raises(domain_errors.ValidationError):
            await repository.save_cart(user_id="u1", cart=None)


class TestGeneratedAdapter:
    """Tests for the generated StripePaymentGateway."""

    @pytest.fixture
    def adapters(self, cart_app):
        return importlib.import_module("app.infrastructure.adapters.stripe_payment_gateway")

    @pytest.fixture
    def errors(self, cart_app):
        return importlib.import_module("app.infrastructure.errors")

    @pytest.fixture
    def make_gateway(self, adapters):
        def factory(handler, **config):
            client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://api.test")
            settings = adapters.StripePaymentGatewayConfig(base_url="https://api.test", backoff=0.0, **config)
            return adapters.StripePaymentGateway(settings, client=client)

        return factory

    def test_config_defaults(self, adapters):
        config = adapters.StripePaymentGatewayConfig(base_url="https://api.test")
        assert config.currency == "usd"
        assert config.max_retries == 2
        assert config.api_key is None

    def test_implements_port(self, make_gateway):
        port = importlib.import_module("app.application.interfaces.payment_gateway").IPaymentGateway
        assert isinstance(make_gateway(lambda request: httpx.Response(200)), port)

    @pytest.mark.asyncio
    async def test_charge(self, make_gateway):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json="ch_1")

        gateway = make_gateway(handler)
        assert await gateway.charge(order_id="o1", amount=12.5) == "ch_1"

        (request,) = requests
        assert request.method == "POST"
        assert request.url.path == "/orders/o1/charges"
        assert json.loads(request.content) == {"amount": 12.5}

    @pytest.mark.asyncio
    async def test_bad_request_is_not_retried(self, make_gateway, errors):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(400)

        gateway = make_gateway(handler)
        with pytest.raises(errors.BadRequest) as exc_info:
            await gateway.charge(order_id="o1", amount=1.0)
        assert exc_info.value.status_code == 400
        assert isinstance(exc_info.value, ValueError)
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_server_errors_are_retried(self, make_gateway, errors):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503)

        gateway = make_gateway(handler)
        with pytest.raises(errors.ServerError):
            await gateway.charge(order_id="o1", amount=1.0)
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_recovers_after_a_server_error(self, make_gateway):
        responses = iter([httpx.Response(502), httpx.Response(200, json="ch_2")])
        gateway = make_gateway(lambda request: next(responses))
        assert await gateway.charge(order_id="o1", amount=1.0) == "ch_2"

    @pytest.mark.asyncio
    async def test_rate_limited(self, make_gateway, errors):
        gateway = make_gateway(lambda request: httpx.Response(429, headers={"Retry-After": "7"}), max_retries=0)
        with pytest.raises(errors.RateLimited) as exc_info:
            await gateway.charge(order_id="o1", amount=1.0)
        assert exc_info.value.retry_after == 7.0

    @pytest.mark.asyncio
    async def test_transport_errors_become_service_errors(self, make_gateway, errors):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        gateway = make_gateway(handler, max_retries=1)
        with pytest.raises(errors.ServiceError, match="failed"):
            await gateway.charge(order_id="o1", amount=1.0)

    @pytest.mark.asyncio
    async def test_send_without_attempts_raises_service_error(self, cart_app, errors):
        http = importlib.import_module("app.infrastructure.http")
        calls = []
        transport = httpx.MockTransport(lambda request: calls.append(request) or httpx.Response(200))
        async with httpx.AsyncClient(transport=transport, base_url="https://api.test") as client:
            with pytest.raises(errors.ServiceError, match="GET /ping was not sent"):
                await http.send(client, "GET", "/ping", max_retries=-1)
        assert calls == []
