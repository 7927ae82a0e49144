"""Rate acquisition and derivation: unit conversion, change computation, fallback chain.

Submodules are imported directly (metaltracker.rates.units, .change,
.fallback); providers and the history store both depend on units, so this
package does not re-export anything.
"""
