import pytest
import yaml
from click.testing import CliRunner

from cidralloc import InventoryDatabase, cli

INVENTORY = {
    "networks": [
        {
            "name": "shared",
            "project": "acme",
            "subnetworks": [
                {
                    "name": "web",
                    "region": "us-central1",
                    "ip_cidr_range": "10.0.0.0/20",
                    "secondary_ip_ranges": [
                        {"range_name": "pods", "ip_cidr_range": "10.4.0.0/14"}
                    ],
                },
                {
                    "name": "db",
                    "region": "europe-west1",
                    "ip_cidr_range": "10.0.16.0/20",
                },
            ],
            "addresses": [
                {"name": "lb", "region": "us-central1", "address": "10.16.0.5"}
            ],
            "clusters": [
                {
                    "name": "prod",
                    "location": "us-central1-a",
                    "master_ipv4_cidr_block": "172.16.0.0/28",
                },
                {"name": "dev", "location": "europe-west1"},
            ],
        },
        {
            "name": "other",
            "project": "elsewhere",
            "subnetworks": [
                {"name": "x", "region": "us-central1", "ip_cidr_range": "10.0.0.0/16"}
            ],
        },
    ]
}


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.dump(
            {
                "database": {"sqlite_url": "sqlite:///inventory.db"},
                "defaults": {
                    "project": "acme",
                    "region": "us-central1",
                    "space": "10.0.0.0/8",
                },
            }
        )
    )
    return str(path)


@pytest.fixture
def inventory_file(tmp_path):
    path = tmp_path / "inventory.yaml"
    path.write_text(yaml.dump(INVENTORY))
    return str(path)


def run(config_file, *args):
    return CliRunner().invoke(cli, ["--config", config_file, *args])


@pytest.fixture
def imported(config_file, inventory_file):
    result = run(config_file, "inventory", "import", inventory_file)
    assert result.exit_code == 0, result.output
    return config_file


class TestInventoryDatabase:
    def test_relative_sqlite_path_next_to_config(self, config_file, tmp_path):
        InventoryDatabase(config_file=config_file)
        assert (tmp_path / "inventory.db").exists()

    def test_existing_allocations_order_and_filters(self, config_file):
        db = InventoryDatabase(config_file=config_file)
        db.import_inventory(INVENTORY)

        assert db.existing_allocations("acme", "us-central1") == [
            ("clusters/prod", "172.16.0.0/28"),
            ("subnet/web", "10.0.0.0/20"),
            ("secondary/pods", "10.4.0.0/14"),
            ("addresses/lb", "10.16.0.5"),
        ]
        assert db.existing_allocations("acme", "europe-west1") == [
            ("clusters/prod", "172.16.0.0/28"),
            ("subnet/db", "10.0.16.0/20"),
        ]
        assert db.existing_allocations("acme", "us-central1", network="other") == []
        assert db.existing_allocations("nobody", "us-central1") == []

    def test_import_replaces_network(self, config_file):
        db = InventoryDatabase(config_file=config_file)
        db.import_inventory(INVENTORY)
        db.import_inventory(
            {"networks": [{"name": "shared", "project": "acme", "subnetworks": []}]}
        )
        assert db.existing_allocations("acme", "us-central1") == []

    def test_defaults_merge(self, config_file):
        db = InventoryDatabase(config_file=config_file)
        assert db.defaults["space"] == "10.0.0.0/8"
        assert db.defaults["project"] == "acme"


class TestInventoryCommands:
    def test_import(self, config_file, inventory_file):
        result = run(config_file, "inventory", "import", inventory_file)
        assert result.exit_code == 0
        assert "✅ Imported 2 networks, 3 subnetworks, 1 secondary_ranges" in result.output

    def test_import_malformed(self, config_file, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.dump({"networks": [{"name": "shared"}]}))
        result = run(config_file, "inventory", "import", str(path))
        assert "❌ Malformed inventory file" in result.output

    def test_list(self, imported):
        result = run(imported, "inventory", "list")
        assert result.exit_code == 0
        assert "subnet/web" in result.output
        assert "secondary/pods" in result.output
        assert "subnet/db" not in result.output

    def test_list_empty(self, config_file):
        result = run(config_file, "inventory", "list", "--project", "nobody")
        assert "No existing ranges found." in result.output


class TestResourceCommands:
    def test_network_create_and_duplicate(self, config_file):
        result = run(config_file, "network", "create", "core")
        assert "✅ Created Network: core | acme" in result.output

        result = run(config_file, "network", "create", "core")
        assert "❌ Network 'core' already exists" in result.output

    def test_subnet_requires_valid_cidr(self, config_file):
        run(config_file, "network", "create", "core")
        result = run(config_file, "subnet", "create", "web", "10.0.0/20", "core")
        assert "❌ Invalid CIDR" in result.output

    def test_subnet_requires_network(self, config_file):
        result = run(config_file, "subnet", "create", "web", "10.0.0.0/20", "nope")
        assert "❌ Network 'nope' not found" in result.output

    def test_recorded_ranges_are_seeded(self, config_file):
        run(config_file, "network", "create", "core")
        run(config_file, "subnet", "create", "web", "10.0.0.0/16", "core")
        run(config_file, "secondary", "create", "web", "core", "pods", "10.1.0.0/16")
        run(config_file, "address", "create", "psc", "10.2.0.0/16", "core")
        run(config_file, "cluster", "create", "prod", "10.3.0.0/28", "core")

        result = run(config_file, "inventory", "list")
        for label in ("subnet/web", "secondary/pods", "addresses/psc", "clusters/prod"):
            assert label in result.output

    def test_delete_network_cascades(self, imported):
        result = run(imported, "network", "delete", "shared")
        assert "✅ Deleted Network: shared" in result.output

        result = run(imported, "inventory", "list")
        assert "No existing ranges found." in result.output

    def test_subnet_delete(self, imported):
        result = run(imported, "subnet", "delete", "web", "shared")
        assert "✅ Deleted Subnetwork: web" in result.output
        result = run(imported, "inventory", "list")
        assert "subnet/web" not in result.output
        assert "secondary/pods" not in result.output


class TestAllocate:
    def test_allocates_around_inventory(self, imported):
        result = run(imported, "allocate", "--range", "10.0.0.0/8:20,24", "--no-tree")

        assert result.exit_code == 0, result.output
        assert "⚠️  Skipped clusters/prod (172.16.0.0/28)" in result.output
        assert "✅ Seeded 3 existing ranges into 10.0.0.0/8" in result.output
        assert "10.0.16.0/20" in result.output
        assert "10.16.1.0/24" in result.output

    def test_prints_tree(self, imported):
        result = run(imported, "allocate", "--range", "10.0.0.0/8:20")
        assert result.exit_code == 0, result.output
        assert "subnet/web (10.0.0.0/20)" in result.output
        assert "< new 10.0.0.0/8 > (10.0.16.0/20)" in result.output
        assert "Utilization" in result.output

    def test_exhausted_request_exits_nonzero(self, imported):
        result = run(
            imported,
            "allocate",
            "--space",
            "10.0.0.0/20",
            "--range",
            "10.0.0.0/20:24",
            "--no-tree",
        )
        assert result.exit_code == 1
        assert "❌ Could not allocate /24 under 10.0.0.0/20" in result.output

    def test_overlapping_inventory_aborts(self, imported):
        run(imported, "address", "create", "ilb", "10.0.0.5", "shared")
        result = run(imported, "allocate", "--range", "10.0.0.0/8:24")

        assert result.exit_code == 1
        assert "Inventory ranges overlap" in result.output

    def test_subnet_around_recorded_cluster_aborts(self, imported):
        run(imported, "cluster", "create", "inner", "10.0.0.0/28", "shared")
        result = run(imported, "allocate", "--range", "10.0.0.0/8:24")

        assert result.exit_code == 1
        assert "Inventory ranges overlap" in result.output
        assert "10.0.1.0/24" not in result.output

    def test_non_ascii_size_is_a_usage_error(self, imported):
        result = run(imported, "allocate", "--range", "10.0.0.0/8:²")
        assert result.exit_code == 2
        assert "invalid prefix length" in result.output

    def test_bad_range_option(self, imported):
        result = run(imported, "allocate", "--range", "10.0.0.0/8")
        assert result.exit_code == 2
        assert "expected CIDR:SIZES" in result.output

    def test_bad_space(self, imported):
        result = run(imported, "allocate", "--space", "10.0.0/8", "--range", "10.0.0.0/8:24")
        assert "❌ Invalid space" in result.output

    def test_repeatable(self, imported):
        first = run(imported, "allocate", "--range", "10.0.0.0/8:20,24,28", "--no-tree")
        second = run(imported, "allocate", "--range", "10.0.0.0/8:20,24,28", "--no-tree")
        assert first.output == second.output
