"""
Business logic: the Smart Pricing Engine, Stripe payments, the referral
programme and the LLM-backed deals, surprises and ad copy generators.
"""
