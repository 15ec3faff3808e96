from uuid import uuid4

import pytest

from smarthome_api.domain.devices import LightBulb, TemperatureSensor
from smarthome_api.persistence.unit_of_work import UnitOfWork
from tests.conftest import load, seed


def test_commit_persists(uow_factory):
    sensor = TemperatureSensor(name="Salon", user_id=uuid4())
    seed(uow_factory, sensor)

    stored = load(uow_factory, sensor.id)
    assert isinstance(stored, TemperatureSensor)
    assert stored.name == "Salon"
    assert stored.current_temperature is None


def test_without_commit_nothing_is_persisted(uow_factory):
    bulb = LightBulb(name="Lampara")
    with uow_factory() as uow:
        uow.devices.add(bulb)

    assert load(uow_factory, bulb.id) is None


def test_exception_rolls_back_and_propagates(uow_factory):
    bulb = LightBulb(name="Lampara")
    with pytest.raises(RuntimeError):
        with uow_factory() as uow:
            uow.devices.add(bulb)
            raise RuntimeError("boom")

    assert load(uow_factory, bulb.id) is None


def test_commit_outside_with_block_fails(session_factory):
    uow = UnitOfWork(session_factory)
    with pytest.raises(RuntimeError):
        uow.commit()


def test_units_of_work_are_independent(uow_factory):
    first = uow_factory()
    second = uow_factory()
    assert first is not second


class TestRepository:
    def test_list_for_user_filters_and_searches(self, uow_factory):
        owner, other = uuid4(), uuid4()
        seed(
            uow_factory,
            LightBulb(name="Kitchen lamp", user_id=owner),
            TemperatureSensor(name="Kitchen thermo", user_id=owner),
            LightBulb(name="Bedroom lamp", user_id=owner),
            LightBulb(name="Kitchen lamp", user_id=other),
        )

        with uow_factory() as uow:
            assert len(uow.devices.list_for_user(owner)) == 3
            names = [d.name for d in uow.devices.list_for_user(owner, "KITCHEN")]
            assert names == ["Kitchen lamp", "Kitchen thermo"]
            assert len(uow.devices.list_all()) == 4

    def test_get_for_user_hides_foreign_devices(self, uow_factory):
        bulb = LightBulb(name="Lamp", user_id=uuid4())
        seed(uow_factory, bulb)

        with uow_factory() as uow:
            assert uow.devices.get_for_user(bulb.id, uuid4()) is None
            assert uow.devices.get_for_user(bulb.id, bulb.user_id) == bulb

    def test_update_missing_row_returns_false(self, uow_factory):
        with uow_factory() as uow:
            assert uow.devices.update(TemperatureSensor(name="ghost")) is False

    def test_variant_fields_round_trip(self, uow_factory):
        bulb = LightBulb(name="Lamp", is_on=True, room_id=uuid4())
        sensor = TemperatureSensor(name="Thermo", current_temperature=19.5)
        seed(uow_factory, bulb, sensor)

        assert load(uow_factory, bulb.id) == bulb
        assert load(uow_factory, sensor.id) == sensor
