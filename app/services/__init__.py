"""
                        Services Module

Contains all business logic services. External providers follow the hybrid
pattern: a Mock implementation for development and a Real one for production.

Services:
    - intake: customer resolution, stats merging and the order ledger
    - discounts: discount code validation, redemption and administration
    - payment: Stripe payment capture
    - notifications: SendGrid email and confirmation rendering
"""
