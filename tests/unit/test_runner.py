"""Tests for the batch runner."""

import pytest

from layergen.config import GenerationConfig, LayergenConfig, PublishConfig
from layergen.registry import ArtifactRegistry
from layergen.runner import BatchError, BatchResult, BatchRunner
from layergen.verify import VerificationResult, Violation
from layergen.writer import MemoryWriter


def read_tree(root):
    """Relative path -> content for every file below ``root``."""
    return {
        str(path.relative_to(root)): path.read_text(encoding="utf-8")
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


# =============================================================================
# Whole batches
# =============================================================================


class TestCartBatch:
    """Tests for the full cart batch."""

    def test_every_item_succeeds(self, make_runner, cart_batch):
        result = make_runner().run(cart_batch)
        assert result.success, [error.format() for error in result.errors]
        assert len(result.items) == len(cart_batch)
        # The two schemas share a module but each gets its own artifact entry
        assert len(result.artifacts) == len(cart_batch)

    def test_output_items_carry_artifact_fields(self, make_runner, cart_batch):
        result = make_runner().run(cart_batch)
        cart = result.items[0]
        assert cart["class_name"] == "Cart"
        assert cart["layer"] == "domain/entity"
        assert cart["code_path"] == "app/domain/entities/cart.py"
        assert cart["test_path"] == "tests/domain/entities/test_cart.py"
        assert cart["code_raw_url"] is None
        assert cart["test_raw_url"] is None

    def test_files_are_written(self, make_runner, cart_batch, project):
        runner = make_runner()
        runner.run(cart_batch)
        output = runner.output_dir
        assert output == project / "generated"
        for path in (
            "app/__init__.py",
            "app/domain/entities/cart.py",
            "app/domain/errors.py",
            "app/container.py",
            "app/presentation/api.py",
            "tests/domain/entities/test_cart.py",
            "tests/presentation/routers/__init__.py",
            "conftest.py",
        ):
            assert (output / path).is_file(), path

    def test_generated_files_compile(self, make_runner, cart_batch):
        runner = make_runner()
        runner.run(cart_batch)
        for path, content in read_tree(runner.output_dir).items():
            compile(content, path, "exec")

    def test_registry_is_saved(self, make_runner, cart_batch, project):
        make_runner().run(cart_batch)
        registry = ArtifactRegistry.load(project / ".layergen" / "registry.json")
        assert "Cart" in registry
        assert registry.get("CartStore").code_path == "app/application/stores/cart_store.py"
        assert len(registry) == len(cart_batch)

    def test_rerun_is_idempotent(self, make_runner, cart_batch, project):
        runner = make_runner()
        first = runner.run(cart_batch)
        tree = read_tree(runner.output_dir)
        registry_path = project / ".layergen" / "registry.json"
        registry = registry_path.read_bytes()

        second = make_runner().run(cart_batch)

        assert sorted(second.written) == sorted(first.written)
        assert read_tree(runner.output_dir) == tree
        assert registry_path.read_bytes() == registry
        assert second.items == first.items

    def test_parallel_workers_produce_the_same_tree(self, make_runner, cart_batch, tmp_path):
        serial = make_runner()
        serial.run(cart_batch)

        parallel_root = tmp_path / "parallel"
        parallel = BatchRunner(parallel_root, LayergenConfig(generation=GenerationConfig(workers=4)))
        result = parallel.run(cart_batch)

        assert result.success
        assert read_tree(parallel.output_dir) == read_tree(serial.output_dir)


class TestPartialFailure:
    """Tests for per-item failure isolation."""

    def test_invalid_item_does_not_stop_the_batch(self, make_runner, batch_item):
        batch = [
            batch_item("Cart"),
            {"class_name": "Broken", "layer": "domain/widget"},
            batch_item("Product"),
        ]
        result = make_runner().run(batch)

        assert not result.success
        assert set(result.artifacts) == {"Cart", "Product"}
        (error,) = result.errors
        assert (error.index, error.class_name, error.error_type) == (1, "Broken", "SchemaError")
        assert result.items[1] == {"class_name": "Broken", "layer": "domain/widget"}
        assert "code_path" in result.items[0]
        assert "code_path" in result.items[2]

    def test_non_object_item(self, make_runner, batch_item):
        result = make_runner().run(["Cart", batch_item("Product")])
        (error,) = result.errors
        assert error.index == 0
        assert error.class_name is None
        assert result.items[0] == "Cart"

    def test_unresolvable_name(self, make_runner):
        result = make_runner().run([{"class_name": "Request", "layer": "presentation/schema"}])
        assert result.errors[0].error_type == "NamingError"

    def test_generation_failure_drops_item_from_context(self, make_runner, batch_item):
        broken_cart = batch_item("Cart")
        broken_cart["metadata"] = {"collection_of": "CartItem", "key": "sku"}
        result = make_runner().run([broken_cart, batch_item("AddToCartUseCase")])

        (error,) = result.errors
        assert error.class_name == "Cart"
        source = result.artifacts["AddToCartUseCase"]
        assert source.code_path == "app/application/use_cases/add_to_cart_use_case.py"
        assert any("Cart is not known" in warning for warning in result.warnings)

    def test_layer_violation_is_an_item_error(self, make_runner, batch_item, monkeypatch):
        violation = Violation(
            path="app/domain/entities/product.py",
            line=7,
            layer="domain",
            imported="infrastructure",
            statement="from app.infrastructure.models.base import Base",
        )
        monkeypatch.setattr(
            "layergen.runner.verify",
            lambda package, files: VerificationResult(
                [violation] if "app/domain/entities/product.py" in files else []
            ),
        )
        result = make_runner().run([batch_item("Product"), batch_item("PricingService")])

        (error,) = result.errors
        assert error.error_type == "LayerViolationError"
        assert "domain layer must not import infrastructure" in error.message
        assert set(result.artifacts) == {"PricingService"}

    def test_registry_layer_conflict(self, make_runner, batch_item):
        make_runner().run([batch_item("Cart")])
        result = make_runner().run([{"class_name": "Cart", "layer": "application/interface"}])
        (error,) = result.errors
        assert error.error_type == "RegistryError"
        assert "registry forget Cart" in error.message

    @pytest.mark.parametrize(
        "bad",
        [
            {
                "class_name": "Basket",
                "layer": "domain/entity",
                "type": "aggregate",
                "attributes": ["sku: string", "quantity: number"],
                "methods": [{"method_name": "addItem", "parameters": ["sku: string", "quantity: number"]}],
                "metadata": {"key": 5},
            },
            {
                "class_name": "Order",
                "layer": "domain/entity",
                "type": "entity",
                "attributes": ["status: string"],
                "metadata": {"allowed_values": ["a", "b"]},
            },
            {
                "class_name": "BasketStore",
                "layer": "application/store",
                "type": "store",
                "metadata": {"use_cases": ["AddToCartUseCase"]},
                "methods": [{"method_name": "addItem", "parameters": ["userId: string"]}],
            },
            {
                "class_name": "OrderRouter",
                "layer": "presentation/router",
                "type": "router",
                "metadata": {"paths": {"getOrder": 3}},
                "methods": [{"method_name": "getOrder", "parameters": ["orderId: string"]}],
            },
            {"class_name": "Order", "layer": "domain/entity", "type": "entity", "description": 42},
            {
                "class_name": "OrderService",
                "layer": "domain/service",
                "type": "service",
                "methods": [{"method_name": "total", "description": ["sum"]}],
            },
        ],
        ids=["key", "allowed_values", "use_cases", "paths", "description", "method_description"],
    )
    def test_wrong_typed_fields_fail_one_item(self, make_runner, batch_item, bad):
        result = make_runner().run([batch_item("Product"), bad, batch_item("PricingService")])

        (error,) = result.errors
        assert (error.index, error.class_name, error.error_type) == (1, bad["class_name"], "SchemaError")
        assert set(result.artifacts) == {"Product", "PricingService"}
        assert "code_path" not in result.items[1]

    def test_unexpected_generator_error_fails_one_item(self, make_runner, batch_item, monkeypatch):
        def exploding_verify(package, files):
            if "app/domain/entities/product.py" in files:
                raise RuntimeError("boom")
            return VerificationResult()

        monkeypatch.setattr("layergen.runner.verify", exploding_verify)
        result = make_runner().run([batch_item("Product"), batch_item("PricingService")])

        (error,) = result.errors
        assert (error.index, error.error_type, error.message) == (0, "RuntimeError", "boom")
        assert set(result.artifacts) == {"PricingService"}


class TestDuplicates:
    """Tests for repeated class names within a batch."""

    def test_last_occurrence_wins(self, make_runner, batch_item):
        first = batch_item("Product")
        second = batch_item("Product")
        second["attributes"] = ["id: string", "title: string"]
        result = make_runner().run([first, second])

        assert result.success
        assert any("item 0 superseded by item 1" in warning for warning in result.warnings)
        assert result.items[0]["code_path"] == result.items[1]["code_path"]
        assert result.artifacts["Product"].code_path == "app/domain/entities/product.py"

    def test_winner_content_is_written(self, make_runner, batch_item):
        first = batch_item("Product")
        second = batch_item("Product")
        second["attributes"] = ["id: string", "title: string"]
        runner = make_runner()
        runner.run([first, second])
        content = (runner.output_dir / "app/domain/entities/product.py").read_text(encoding="utf-8")
        assert "title: str" in content
        assert "price" not in content


class TestModes:
    """Tests for dry runs, cleaning and publishing."""

    def test_dry_run_writes_nothing(self, make_runner, cart_batch, project):
        runner = make_runner(dry_run=True)
        result = runner.run(cart_batch)

        assert result.success
        assert isinstance(runner.writer, MemoryWriter)
        assert "app/domain/entities/cart.py" in runner.writer.files
        assert not runner.output_dir.exists()
        assert not (project / ".layergen").exists()

    def test_clean_drops_previous_classes(self, make_runner, batch_item, project):
        runner = make_runner()
        runner.run([batch_item("Cart")])
        stale = runner.output_dir / "app" / "stale.py"
        stale.write_text("x = 1\n", encoding="utf-8")

        result = make_runner(clean=True).run([batch_item("Product")])

        assert result.success
        assert not stale.exists()
        registry = ArtifactRegistry.load(project / ".layergen" / "registry.json")
        assert "Cart" not in registry
        assert "Product" in registry

    def test_later_batch_sees_earlier_classes(self, make_runner, batch_item):
        make_runner().run([batch_item("Cart")])
        result = make_runner().run([batch_item("AddToCartUseCase")])
        assert result.success
        assert not any("Cart is not known" in warning for warning in result.warnings)

    def test_publisher_urls(self, project, batch_item):
        config = LayergenConfig(publish=PublishConfig(raw_url_base="https://raw.example.com/shop/main/"))
        result = BatchRunner(project, config).run([batch_item("Cart")])
        item = result.items[0]
        assert item["code_raw_url"] == "https://raw.example.com/shop/main/app/domain/entities/cart.py"
        assert item["test_raw_url"] == "https://raw.example.com/shop/main/tests/domain/entities/test_cart.py"

    def test_custom_package(self, make_runner, batch_item):
        runner = make_runner(package="shop")
        result = runner.run([batch_item("Cart")])
        assert result.items[0]["code_path"] == "shop/domain/entities/cart.py"
        content = (runner.output_dir / "shop/domain/entities/cart.py").read_text(encoding="utf-8")
        assert "from shop.domain.validation import" in content

    def test_write_failure_is_an_item_error(self, project, batch_item):
        class FailingWriter(MemoryWriter):
            def write(self, path, content):
                if path.endswith("product.py"):
                    raise OSError("disk full")
                super().write(path, content)

        runner = BatchRunner(project, LayergenConfig(), writer=FailingWriter())
        result = runner.run([batch_item("Product"), batch_item("PricingService")])

        (error,) = result.errors
        assert error.class_name == "Product"
        assert error.message == "disk full"
        assert "Product" not in runner.registry


class TestBatchResult:
    """Tests for result reporting."""

    def test_summary(self):
        result = BatchResult(written=["a.py"], warnings=["w"])
        result.errors.append(BatchError(index=2, class_name="CartStore", error_type="SchemaError", message="bad"))
        assert result.summary() == "0 classes generated, 1 failed, 1 files written, 1 warnings"
        assert result.failed_indexes == {2}
        assert not result.success

    def test_error_format(self):
        error = BatchError(index=2, class_name="CartStore", error_type="SchemaError", message="bad")
        assert error.format() == "item 2 (CartStore): [SchemaError] bad"
        assert BatchError(None, None, "OSError", "disk full").format() == "run: [OSError] disk full"
        assert error.to_dict()["index"] == 2

    def test_duplicate_warnings_are_dropped(self):
        result = BatchResult()
        result.add_warning("w")
        result.add_warning("w")
        assert result.warnings == ["w"]


@pytest.fixture
def config_file(project):
    path = project / "layergen.toml"
    path.write_text('[generation]\npackage = "shop"\noutput = "out/"\n', encoding="utf-8")
    return path


class TestConfigLoading:
    """Tests for runners built from layergen.toml."""

    def test_runner_reads_project_config(self, project, config_file, batch_item):
        runner = BatchRunner(project)
        assert runner.package == "shop"
        assert runner.output_dir == project / "out"
        result = runner.run([batch_item("Cart")])
        assert (project / "out" / "shop" / "domain" / "entities" / "cart.py").is_file()
        assert result.success
