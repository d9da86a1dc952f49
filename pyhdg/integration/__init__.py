from .quadrature import edge, gauss_legendre, quad_rule, volume
__all__=['edge','gauss_legendre','quad_rule','volume']
