"""
Package: delivery
Description: Event delivery for the Event Relay.

Matches events to subscriptions, signs and pushes them to webhook
targets, and runs the worker pool that retries failed attempts with
exponential backoff through the delivery queue.
"""
