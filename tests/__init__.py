"""Test suite for the inventory ledger and MRP engine"""
