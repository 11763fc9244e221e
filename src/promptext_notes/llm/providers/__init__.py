"""Vendor adapters behind one provider contract."""
