"""Payments module - Stripe PaymentIntents, webhooks and Connect onboarding."""
