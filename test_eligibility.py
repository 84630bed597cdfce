"""Tests for the ERP -> MES eligibility rules."""

import asyncio

import pytest


CHARACTERISTIC = "/classificationcharacteristic/v1/A_ClfnCharcDescForKeyDate"
CHARACTERISTIC_VALUES = "/materialclassification/v1/A_ProductCharcValue"


def mes_relevance(value="YES", class_name="INTERFACE_DATA", description="IS MES RELEVANT"):
    from core.models.base import parse_record
    from core.models.erp import ClassAssignment

    return parse_record(ClassAssignment, {
        "ClassDetails": {"ClassTypeName": "Material Class", "Class": class_name},
        "ProductClassCharc": {
            "Description": {"CharcDescription": description},
            "Valuation": [{"CharcValue": value}, {"CharcValue": "YES"}],
        },
    })


def classification_responses(erp_session, *values):
    erp_session.add("GET", CHARACTERISTIC, 200, {"d": {"results": [{"CharcInternalID": "0000001234"}]}})
    erp_session.add("GET", CHARACTERISTIC_VALUES, 200, {"d": {"results": [{"CharcValue": v} for v in values]}})


class TestMesRelevance:

    def test_relevant(self):
        from core.eligibility import is_material_mes_relevant

        assert is_material_mes_relevant([mes_relevance()])

    def test_only_first_valuation_counts(self):
        from core.eligibility import is_material_mes_relevant

        assert not is_material_mes_relevant([mes_relevance(value="NO")])

    def test_other_classes_are_ignored(self):
        from core.eligibility import is_material_mes_relevant

        assert not is_material_mes_relevant([mes_relevance(class_name="PACKAGING")])
        assert not is_material_mes_relevant([mes_relevance(description="IS HAZARDOUS")])
        assert is_material_mes_relevant([mes_relevance(class_name="PACKAGING"), mes_relevance()])

    def test_no_classes(self):
        from core.eligibility import is_material_mes_relevant

        assert not is_material_mes_relevant([])
        assert not is_material_mes_relevant(None)


class TestCheckErpPlant:
    """Combined plant check of the ERP events."""

    def archive(self, runtime):
        return runtime.archive_store.open("production-order-to-mes", "msg-1")

    def test_unknown_plant(self, runtime, erp_session):
        assert not asyncio.run(runtime.eligibility.check_erp_plant("9999", "FG-100", self.archive(runtime)))
        assert erp_session.requests == []

    def test_disabled_plant_row(self, runtime):
        assert not asyncio.run(runtime.eligibility.check_erp_plant("1099", "FG-100", self.archive(runtime)))

    def test_primary_plant(self, runtime, erp_session):
        assert asyncio.run(runtime.eligibility.check_erp_plant("1015", "FG-100", self.archive(runtime)))
        assert erp_session.requests == []

    def test_secondary_instance_disabled(self, runtime, erp_session):
        assert not asyncio.run(runtime.eligibility.check_erp_plant("1012", "FG-100", self.archive(runtime)))
        assert not asyncio.run(runtime.eligibility.check_erp_plant("1017", "FG-100", self.archive(runtime)))
        assert erp_session.requests == []

    def test_secondary_instance_enabled(self, make_runtime, erp_session):
        runtime = make_runtime(enable_secondary_instance=True)

        assert asyncio.run(runtime.eligibility.check_erp_plant("1012", "FG-100", self.archive(runtime)))
        assert erp_session.requests == []

    def test_dual_mapped_plant_with_mes_classification(self, make_runtime, erp_session):
        runtime = make_runtime(enable_secondary_instance=True)
        classification_responses(erp_session, "OTHER", "1017_COMPASS")

        assert asyncio.run(runtime.eligibility.check_erp_plant("1017", "FG-100", self.archive(runtime)))
        values_request = erp_session.requests_to(CHARACTERISTIC_VALUES)[0]
        assert "Product+eq+%27FG-100%27" in values_request["url"]
        assert "CharcInternalID+eq+%270000001234%27" in values_request["url"]

    def test_dual_mapped_plant_without_mes_classification(self, make_runtime, erp_session):
        runtime = make_runtime(enable_secondary_instance=True)
        classification_responses(erp_session, "1017_S4")

        assert not asyncio.run(runtime.eligibility.check_erp_plant("1017", "FG-100", self.archive(runtime)))

    def test_characteristic_id_is_looked_up_once(self, make_runtime, erp_session):
        runtime = make_runtime(enable_secondary_instance=True)
        classification_responses(erp_session, "1017_COMPASS")

        async def check_twice():
            first = await runtime.eligibility.check_erp_plant("1017", "FG-100", self.archive(runtime))
            second = await runtime.eligibility.check_erp_plant("1017", "FG-200", self.archive(runtime))
            return first, second

        assert asyncio.run(check_twice()) == (True, True)
        assert len(erp_session.requests_to(CHARACTERISTIC)) == 1
        assert len(erp_session.requests_to(CHARACTERISTIC_VALUES)) == 2
        assert runtime.characteristic_cache.value == "0000001234"

    def test_classification_errors_propagate(self, make_runtime, erp_session):
        from connectors.erp.erp_client import ErpApiError

        runtime = make_runtime(enable_secondary_instance=True)
        erp_session.add("GET", CHARACTERISTIC, 500, "Internal Server Error")

        with pytest.raises(ErpApiError):
            asyncio.run(runtime.eligibility.check_erp_plant("1017", "FG-100", self.archive(runtime)))
        assert runtime.characteristic_cache.value is None


class TestCharacteristicIdCache:

    def test_concurrent_callers_share_one_load(self):
        from core.eligibility import CharacteristicIdCache

        cache = CharacteristicIdCache()
        calls = []

        async def loader():
            calls.append(1)
            await asyncio.sleep(0)
            return "42"

        async def load_many():
            return await asyncio.gather(*(cache.get_or_load(loader) for _ in range(5)))

        assert asyncio.run(load_many()) == ["42"] * 5
        assert len(calls) == 1

    def test_failed_load_is_retried(self):
        from core.eligibility import CharacteristicIdCache

        cache = CharacteristicIdCache()

        async def failing():
            raise RuntimeError("ERP unavailable")

        async def working():
            return "42"

        async def scenario():
            with pytest.raises(RuntimeError):
                await cache.get_or_load(failing)
            return await cache.get_or_load(working)

        assert asyncio.run(scenario()) == "42"

    def test_reset(self):
        from core.eligibility import CharacteristicIdCache

        cache = CharacteristicIdCache()

        async def loader():
            return "42"

        asyncio.run(cache.get_or_load(loader))
        cache.reset()
        assert cache.value is None
