import unittest

from bedflow.insights import (
    DEFAULT_RULES,
    Insight,
    InsightContext,
    WardLoad,
    generate_insights,
)


def context(total=100, occupied=50, next_24=0, wards=()):
    return InsightContext(
        total_beds=total,
        occupied_beds=occupied,
        discharges_next_24_hours=next_24,
        wards=list(wards),
    )


class TestGenerateInsights(unittest.TestCase):
    def test_high_occupancy_threshold(self):
        fired = generate_insights(context(occupied=91))
        self.assertEqual(
            fired,
            [
                Insight(
                    type="warning",
                    priority="high",
                    message="High occupancy alert: 91% of beds occupied",
                )
            ],
        )
        self.assertEqual(generate_insights(context(occupied=89)), [])
        self.assertEqual(generate_insights(context(occupied=90)), [])

    def test_no_beds_never_alerts(self):
        self.assertEqual(generate_insights(context(total=0, occupied=0)), [])

    def test_upcoming_discharges(self):
        [insight] = generate_insights(context(next_24=3))
        self.assertEqual(insight.type, "info")
        self.assertEqual(insight.priority, "medium")
        self.assertEqual(insight.message, "3 beds expected to be available in next 24 hours")
        self.assertEqual(generate_insights(context(next_24=2)), [])

    def test_critical_wards_named_jointly(self):
        wards = [
            WardLoad("Cardiology", 95),
            WardLoad("General", 90),
            WardLoad("ICU", 100),
        ]
        [insight] = generate_insights(context(wards=wards))
        self.assertEqual(insight.message, "Critical capacity in Cardiology, ICU")
        self.assertEqual(insight.priority, "high")

    def test_rules_fire_in_order(self):
        insights = generate_insights(
            context(occupied=95, next_24=4, wards=[WardLoad("ICU", 95)])
        )
        self.assertEqual(
            [i.message.split()[0] for i in insights], ["High", "4", "Critical"]
        )

    def test_custom_rules(self):
        def always(ctx):
            return Insight("info", "low", f"{ctx.total_beds} beds")

        insights = generate_insights(context(), rules=list(DEFAULT_RULES) + [always])
        self.assertEqual(insights, [Insight("info", "low", "100 beds")])


if __name__ == "__main__":
    unittest.main()
