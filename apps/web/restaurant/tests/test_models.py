"""
Tests for order numbering.
"""

import pytest

from apps.web.restaurant.tests.factories import OrderFactory, OrganizationFactory


@pytest.mark.django_db
class TestOrderNumber:
    def test_numbers_start_after_1000(self, organization):
        first = OrderFactory(organization=organization)
        second = OrderFactory(organization=organization)

        assert first.order_number == 1001
        assert second.order_number == 1002

    def test_numbering_is_per_organization(self, organization):
        OrderFactory(organization=organization)
        other = OrderFactory(organization=OrganizationFactory())

        assert other.order_number == 1001

    def test_existing_number_kept_on_save(self, organization):
        order = OrderFactory(organization=organization)
        OrderFactory(organization=organization)

        order.notes = "Extra napkins"
        order.save()

        order.refresh_from_db()
        assert order.order_number == 1001

    def test_explicit_number_kept(self, organization):
        order = OrderFactory(organization=organization, order_number=2500)
        following = OrderFactory(organization=organization)

        assert order.order_number == 2500
        assert following.order_number == 2501
