# Overview: Service layer for the fulfillment core; each service takes a session at construction.
