"""
Shop domain services. Views stay thin and call into these modules:

finalize      Stripe session -> Order (idempotent)
promo_codes   promo eligibility + discount math
inventory     stock reserve/deduct policy
analytics     sales / profit reporting
admin_orders  staff status moves + deletion
in_person     point-of-sale orders
"""
