# Automatically load all models so metadata knows them
from fieldpos.models.customer_model import Customer
from fieldpos.models.collection_model import Collection
