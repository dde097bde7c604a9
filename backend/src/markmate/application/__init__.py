"""Application layer - repository contracts and services"""
