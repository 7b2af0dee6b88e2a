from decimal import Decimal
from django.test import SimpleTestCase, TestCase

from base import exceptions
from base.tenancy import Tenant
from inventory.models import Product, ProductBatch
from user.models import Company, CustomUser
from . import actions
from .engine import CartLine, CatalogEntry, evaluate
from .models import DiscountCampaign, ProductDiscountConfiguration
from .rules import Campaign
from .services import CampaignService
from .summary import explain_totals, summarize, to_documents


def rule(name, value, type="percentage", low=None, high=None, once=False, enabled=True):
    return {
        "isEnabled": enabled,
        "name": name,
        "type": type,
        "value": str(value),
        "conditionMin": None if low is None else str(low),
        "conditionMax": None if high is None else str(high),
        "applyFixedOnce": once,
    }


def campaign(**kwargs):
    snapshot = {
        "id": 1,
        "name": "Festive",
        "isOneTimePerTransaction": False,
        "globalCartPriceRule": None,
        "globalCartQuantityRule": None,
        "defaultRules": {},
        "productConfigurations": [],
        "buyGetRules": [],
    }
    snapshot.update(kwargs)
    return Campaign.from_snapshot(snapshot)


def line(product_id, quantity, price, batch_id=None, **kwargs):
    return CartLine(
        line_id=f"{product_id}:{batch_id or 'nobatch'}",
        product_id=product_id,
        quantity=Decimal(str(quantity)),
        unit_price=Decimal(str(price)),
        batch_id=batch_id,
        **kwargs,
    )


class RuleEvaluationTestCase(SimpleTestCase):
    def test_no_campaign_gives_no_discount(self):
        result = evaluate([line(1, 2, 100)])

        self.assertEqual(result.total_discount, Decimal("0"))
        self.assertEqual(result.applied_rules, [])

    def test_product_rule_beats_campaign_default(self):
        promo = campaign(
            defaultRules={"line_item_value": rule("Default 10%", 10)},
            productConfigurations=[
                {
                    "productId": 1,
                    "batchId": None,
                    "isActiveForProductInCampaign": True,
                    "rules": {"line_item_value": rule("Product 20%", 20)},
                }
            ],
        )

        result = evaluate([line(1, 10, 100), line(2, 10, 100)], promo)

        self.assertEqual(result.per_line_discount["1:nobatch"], Decimal("200"))
        self.assertEqual(result.per_line_discount["2:nobatch"], Decimal("100"))
        types = [(info.product_id_affected, info.rule_type) for info in result.applied_rules]
        self.assertIn((1, "product_config_line_item_value"), types)
        self.assertIn((2, "campaign_default_line_item_value"), types)

    def test_batch_rule_beats_product_rule(self):
        promo = campaign(
            productConfigurations=[
                {
                    "productId": 1,
                    "batchId": None,
                    "rules": {"line_item_value": rule("Product 20%", 20)},
                },
                {
                    "productId": 1,
                    "batchId": 7,
                    "rules": {"line_item_value": rule("Clearance 50%", 50)},
                },
            ],
        )

        result = evaluate([line(1, 2, 100, batch_id=7), line(1, 2, 100, batch_id=8)], promo)

        self.assertEqual(result.per_line_discount["1:7"], Decimal("100"))
        self.assertEqual(result.per_line_discount["1:8"], Decimal("40"))
        self.assertEqual(result.applied_rules[0].rule_type, "batch_config_line_item_value")

    def test_inactive_product_configuration_falls_back_to_default(self):
        promo = campaign(
            defaultRules={"line_item_value": rule("Default 10%", 10)},
            productConfigurations=[
                {
                    "productId": 1,
                    "isActiveForProductInCampaign": False,
                    "rules": {"line_item_value": rule("Product 20%", 20)},
                }
            ],
        )

        result = evaluate([line(1, 1, 100)], promo)

        self.assertEqual(result.per_line_discount["1:nobatch"], Decimal("10"))

    def test_product_configuration_replaces_defaults_of_other_categories(self):
        promo = campaign(
            defaultRules={"specific_qty_threshold": rule("Bulk 10%", 10, low=5)},
            productConfigurations=[
                {
                    "productId": 1,
                    "batchId": None,
                    "rules": {"line_item_value": rule("Product 20%", 20)},
                }
            ],
        )

        result = evaluate([line(1, 10, 100), line(2, 10, 100)], promo)

        self.assertEqual(result.per_line_discount["1:nobatch"], Decimal("200"))
        self.assertEqual(result.per_line_discount["2:nobatch"], Decimal("100"))
        types = [(info.product_id_affected, info.rule_type) for info in result.applied_rules]
        self.assertEqual(
            types,
            [(1, "product_config_line_item_value"), (2, "campaign_default_specific_qty_threshold")],
        )

    def test_defaults_apply_when_product_configuration_does_not_fire(self):
        promo = campaign(
            defaultRules={"specific_qty_threshold": rule("Bulk 10%", 10, low=5)},
            productConfigurations=[
                {
                    "productId": 1,
                    "batchId": None,
                    "rules": {"line_item_value": rule("Big spend 20%", 20, low=5000)},
                }
            ],
        )

        result = evaluate([line(1, 10, 100)], promo)

        self.assertEqual(result.per_line_discount["1:nobatch"], Decimal("100"))
        self.assertEqual(
            result.applied_rules[0].rule_type, "campaign_default_specific_qty_threshold"
        )

    def test_fixed_quantity_rule_scales_unless_applied_once(self):
        scaled = campaign(defaultRules={"line_item_quantity": rule("5 off each", 5, "fixed")})
        once = campaign(
            defaultRules={"line_item_quantity": rule("5 off", 5, "fixed", once=True)}
        )

        self.assertEqual(evaluate([line(1, 4, 100)], scaled).total_discount, Decimal("20"))
        result = evaluate([line(1, 4, 100)], once)
        self.assertEqual(result.total_discount, Decimal("5"))
        self.assertTrue(result.applied_rules[0].applied_once)

    def test_fixed_value_rule_applies_once(self):
        promo = campaign(defaultRules={"line_item_value": rule("50 off", 50, "fixed")})

        result = evaluate([line(1, 4, 100)], promo)

        self.assertEqual(result.total_discount, Decimal("50"))

    def test_rule_outside_condition_window_does_not_fire(self):
        promo = campaign(
            defaultRules={
                "specific_qty_threshold": rule("Bulk", 10, low=5),
                "specific_unit_price": rule("Premium", 5, low=200, high=500),
            }
        )

        result = evaluate([line(1, 3, 100)], promo)

        self.assertEqual(result.total_discount, Decimal("0"))

    def test_line_discounts_stack_but_never_exceed_line_total(self):
        promo = campaign(
            defaultRules={
                "line_item_quantity": rule("Qty", 60, "fixed"),
                "line_item_value": rule("Value 50%", 50),
            }
        )

        result = evaluate([line(1, 1, 100)], promo)

        self.assertEqual(result.per_line_discount["1:nobatch"], Decimal("100"))

    def test_cart_rule_uses_subtotal_after_line_discounts(self):
        promo = campaign(
            defaultRules={"line_item_value": rule("Value 10%", 10)},
            globalCartPriceRule=rule("Big basket", 10, low=500),
        )

        result = evaluate([line(1, 10, 100)], promo)

        self.assertEqual(result.total_item_discount, Decimal("100"))
        self.assertEqual(result.cart_discount_amount, Decimal("90"))
        cart_entry = result.applied_rules[-1]
        self.assertTrue(cart_entry.is_cart_level)
        self.assertIsNone(cart_entry.product_id_affected)

    def test_cart_quantity_rule(self):
        promo = campaign(globalCartQuantityRule=rule("Six pack", 30, "fixed", low=6))

        self.assertEqual(
            evaluate([line(1, 3, 20), line(2, 3, 20)], promo).cart_discount_amount,
            Decimal("30"),
        )
        self.assertEqual(evaluate([line(1, 5, 20)], promo).cart_discount_amount, Decimal("0"))

    def test_one_time_campaign_keeps_only_the_best_rule(self):
        promo = campaign(
            isOneTimePerTransaction=True,
            defaultRules={
                "line_item_value": rule("Value 10%", 10),
                "line_item_quantity": rule("Qty", 2, "fixed"),
            },
            globalCartPriceRule=rule("Flat 150", 150, "fixed"),
        )

        result = evaluate([line(1, 10, 100), line(2, 1, 50)], promo)

        self.assertEqual(result.total_discount, Decimal("150"))
        self.assertEqual(len(result.applied_rules), 1)
        self.assertEqual(result.applied_rules[0].source_rule_name, "Flat 150")

    def test_one_time_cap_ties_keep_the_first_rule(self):
        promo = campaign(
            isOneTimePerTransaction=True,
            defaultRules={"line_item_value": rule("Ten", 10)},
        )

        result = evaluate([line(1, 1, 100), line(2, 1, 100)], promo)

        self.assertEqual(result.total_discount, Decimal("10"))
        self.assertEqual(result.applied_rules[0].product_id_affected, 1)

    def test_custom_override_replaces_campaign_line_rules(self):
        promo = campaign(defaultRules={"line_item_value": rule("Value 10%", 10)})
        lines = [
            line(1, 2, 100, custom_discount_type="fixed", custom_discount_value=Decimal("5")),
            line(2, 1, 100),
        ]

        result = evaluate(lines, promo)

        self.assertEqual(result.per_line_discount["1:nobatch"], Decimal("10"))
        self.assertEqual(result.per_line_discount["2:nobatch"], Decimal("10"))
        custom = result.applied_rules[0]
        self.assertEqual(custom.rule_type, "custom_item_discount")
        self.assertEqual(custom.discount_campaign_name, "Custom")

    def test_custom_override_applies_without_campaign(self):
        lines = [
            line(1, 4, 50, custom_discount_type="percentage", custom_discount_value=Decimal("25"))
        ]

        result = evaluate(lines)

        self.assertEqual(result.total_discount, Decimal("50"))

    def test_buy_get_repeatable(self):
        rule_data = {
            "id": "bg1",
            "buyProductId": 1,
            "buyQuantity": "2",
            "getProductId": 2,
            "getQuantity": "1",
            "discountType": "percentage",
            "discountValue": "100",
            "isRepeatable": True,
        }
        repeatable = campaign(buyGetRules=[rule_data])
        single = campaign(buyGetRules=[dict(rule_data, isRepeatable=False)])
        lines = [line(1, 4, 10), line(2, 3, 50)]

        self.assertEqual(evaluate(lines, repeatable).total_discount, Decimal("100"))
        result = evaluate(lines, single)
        self.assertEqual(result.total_discount, Decimal("50"))
        self.assertEqual(result.applied_rules[0].rule_type, "buy_get_free")
        self.assertEqual(result.applied_rules[0].source_rule_name, "Buy 2 Get 1")

    def test_buy_get_ignores_one_time_cap(self):
        promo = campaign(
            isOneTimePerTransaction=True,
            defaultRules={"line_item_value": rule("Value 10%", 10)},
            buyGetRules=[
                {
                    "buyProductId": 1,
                    "buyQuantity": "1",
                    "getProductId": 2,
                    "getQuantity": "1",
                    "discountType": "fixed",
                    "discountValue": "20",
                }
            ],
        )

        result = evaluate([line(1, 1, 100), line(2, 1, 50)], promo)

        # 10% of the 100 line wins the cap; buy/get adds 20 on top
        self.assertEqual(result.total_discount, Decimal("30"))

    def test_price_comes_from_catalog_when_line_has_none(self):
        catalog = {1: CatalogEntry(product_id=1, selling_price=Decimal("80"), batch_prices={3: Decimal("60")})}
        lines = [
            CartLine(line_id="a", product_id=1, quantity=Decimal("1")),
            CartLine(line_id="b", product_id=1, quantity=Decimal("1"), batch_id=3),
        ]

        result = evaluate(lines, catalog=catalog)

        self.assertEqual(result.subtotal, Decimal("140"))

    def test_rejects_non_positive_quantity(self):
        with self.assertRaises(exceptions.ValidationError):
            evaluate([line(1, 0, 100)])


class DiscountSummaryTestCase(SimpleTestCase):
    def test_summary_orders_lines_then_cart(self):
        promo = campaign(
            defaultRules={"line_item_value": rule("Value 10%", 10)},
            globalCartPriceRule=rule("Cart 5", 5, "fixed"),
        )
        lines = [
            line(1, 1, 100),
            line(2, 1, 100, custom_discount_type="fixed", custom_discount_value=Decimal("1")),
        ]

        summary = summarize(evaluate(lines, promo))

        self.assertEqual(
            [info.rule_type for info in summary],
            [
                "campaign_default_line_item_value",
                "custom_item_discount",
                "campaign_global_cart_price",
            ],
        )

    def test_same_rule_on_two_batches_is_merged(self):
        promo = campaign(defaultRules={"line_item_value": rule("Value 10%", 10)})
        lines = [line(1, 1, 100, batch_id=1), line(1, 2, 100, batch_id=2)]

        summary = summarize(evaluate(lines, promo))

        self.assertEqual(len(summary), 1)
        self.assertEqual(summary[0].total_calculated_discount, Decimal("30"))

    def test_explain_totals_matches_engine(self):
        promo = campaign(
            defaultRules={"line_item_quantity": rule("Qty", 3, "fixed")},
            globalCartPriceRule=rule("Cart 10%", 10),
        )
        result = evaluate([line(1, 5, 40), line(2, 2, 25)], promo)

        totals = explain_totals(to_documents(summarize(result)))

        self.assertEqual(totals["item_discount"], result.total_item_discount)
        self.assertEqual(totals["cart_discount"], result.cart_discount_amount)
        self.assertEqual(totals["total_discount"], result.total_discount)

    def test_explain_totals_skips_malformed_entries(self):
        stored = [
            {"ruleType": "campaign_global_cart_price", "totalCalculatedDiscount": "12.50"},
            "garbage",
            {"totalCalculatedDiscount": "99"},
        ]

        with self.assertLogs("discount.summary", level="WARNING"):
            totals = explain_totals(stored)

        self.assertEqual(totals["cart_discount"], Decimal("12.50"))
        self.assertEqual(totals["item_discount"], Decimal("0"))


class CampaignServiceTestCase(TestCase):
    def setUp(self):
        self.company = Company.objects.create(name="Sri Stores")
        self.tenant = Tenant(company_id=self.company.pk)
        self.user = CustomUser.objects.create_user(
            first_name="Ravi", phone_number="9876543210", password="pass", company=self.company
        )
        self.product = Product.objects.create(
            company=self.company, name="rice", selling_price=Decimal("50")
        )
        self.batch = ProductBatch.objects.create(
            product=self.product, batch_number="B1", quantity=Decimal("10")
        )

    def campaign_data(self, **kwargs):
        data = {
            "name": "diwali offers",
            "isDefault": True,
            "defaultRules": {"line_item_value": rule("Value 10%", 10)},
            "globalCartPriceRule": rule("Cart 5%", 5, low=1000),
            "productConfigurations": [
                {"productId": self.product.pk, "rules": {"line_item_quantity": rule("Qty", 1, "fixed")}},
                {
                    "productId": self.product.pk,
                    "batchId": self.batch.pk,
                    "rules": {"line_item_value": rule("Old stock", 30)},
                },
            ],
        }
        data.update(kwargs)
        return data

    def test_save_campaign_creates_rules_and_configurations(self):
        campaign = CampaignService.save_campaign(self.tenant, self.campaign_data(), user=self.user)

        self.assertEqual(campaign.name, "diwali offers")
        self.assertEqual(campaign.product_configurations.count(), 2)
        self.assertEqual(campaign.default_line_item_value_rule["name"], "Value 10%")
        engine = campaign.to_engine()
        self.assertEqual(len(engine.rule_sets_for(self.product.pk, self.batch.pk)), 3)

    def test_campaign_name_is_kept_as_entered(self):
        campaign = CampaignService.save_campaign(
            self.tenant, self.campaign_data(name="  Buy 2, get 1 FREE?  ")
        )

        self.assertEqual(campaign.name, "Buy 2, get 1 FREE?")
        self.assertEqual(campaign.to_snapshot()["name"], "Buy 2, get 1 FREE?")

    def test_new_default_unsets_previous_default(self):
        first = CampaignService.save_campaign(self.tenant, self.campaign_data())
        second = CampaignService.save_campaign(self.tenant, self.campaign_data(name="summer"))

        first.refresh_from_db()
        self.assertFalse(first.is_default)
        self.assertTrue(second.is_default)
        self.assertEqual(CampaignService.get_active_campaign(self.company.pk), second)

    def test_update_removes_missing_configurations(self):
        campaign = CampaignService.save_campaign(self.tenant, self.campaign_data())
        data = self.campaign_data(id=campaign.pk)
        data["productConfigurations"] = data["productConfigurations"][:1]

        CampaignService.save_campaign(self.tenant, data)

        self.assertEqual(
            ProductDiscountConfiguration.objects.filter(campaign=campaign).count(), 1
        )

    def test_enabled_rule_needs_a_name(self):
        data = self.campaign_data(defaultRules={"line_item_value": rule("", 10)})

        with self.assertRaises(exceptions.ValidationError):
            CampaignService.save_campaign(self.tenant, data)
        self.assertFalse(DiscountCampaign.objects.exists())

    def test_duplicate_name_is_a_conflict(self):
        CampaignService.save_campaign(self.tenant, self.campaign_data())

        with self.assertRaises(exceptions.ConflictError):
            CampaignService.save_campaign(self.tenant, self.campaign_data(isDefault=False))

    def test_expired_campaign_is_not_active(self):
        CampaignService.save_campaign(
            self.tenant, self.campaign_data(validFrom="2020-01-01", validTo="2020-01-31")
        )

        self.assertIsNone(CampaignService.get_active_campaign(self.company.pk))

    def test_delete_refused_while_sales_reference_campaign(self):
        from sales.models import SaleRecord

        campaign = CampaignService.save_campaign(self.tenant, self.campaign_data())
        SaleRecord.objects.create(company=self.company, bill_number="INV-1", campaign=campaign)

        with self.assertRaises(exceptions.ConflictError):
            CampaignService.delete_campaign(self.tenant, campaign.pk)

    def test_other_company_cannot_see_campaign(self):
        campaign = CampaignService.save_campaign(self.tenant, self.campaign_data())
        other = Company.objects.create(name="Other Mart")

        with self.assertRaises(exceptions.NotFoundError):
            CampaignService.get_campaign(Tenant(company_id=other.pk), campaign.pk)

    def test_non_numeric_campaign_id_is_a_validation_error(self):
        result = actions.delete_campaign(self.user, "festive")

        self.assertFalse(result["success"])
        self.assertEqual(result["code"], "validation_error")

    def test_action_returns_failed_result_for_user_without_company(self):
        loner = CustomUser.objects.create_user(
            first_name="Anu", phone_number="9876500000", password="pass"
        )

        result = actions.save_campaign(loner, self.campaign_data())

        self.assertEqual(
            result,
            {
                "success": False,
                "error": "User is not associated with a company.",
                "code": "validation_error",
            },
        )

    def test_action_success_result(self):
        result = actions.save_campaign(self.user, self.campaign_data())

        self.assertTrue(result["success"])
        self.assertEqual(result["data"]["name"], "diwali offers")
        self.assertEqual(len(result["data"]["productConfigurations"]), 2)
