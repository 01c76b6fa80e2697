"""Embedded demonstration dataset: 50 vehicles, 15 brands, 4 electric."""

SAMPLE_CSV_DATA = """brand,model,year,price,mileage,condition,fuelType,transmission,engineSize
Toyota,Camry,2020,24500,35000,good,petrol,automatic,2.5
Honda,Accord,2019,22000,42000,good,petrol,automatic,2.0
BMW,3 Series,2021,38000,18000,excellent,petrol,automatic,2.0
Mercedes,C-Class,2020,42000,25000,excellent,petrol,automatic,2.0
Tesla,Model 3,2022,45000,12000,excellent,electric,automatic,0
Ford,F-150,2018,28000,65000,fair,petrol,automatic,5.0
Chevrolet,Silverado,2019,30000,58000,good,petrol,automatic,5.3
Nissan,Altima,2020,21000,38000,good,petrol,automatic,2.5
Volkswagen,Passat,2019,23000,45000,good,diesel,automatic,2.0
Hyundai,Elantra,2021,19000,22000,excellent,petrol,automatic,2.0
Kia,Optima,2020,20000,30000,good,petrol,automatic,2.4
Mazda,6,2019,22000,40000,good,petrol,automatic,2.5
Lexus,ES,2021,40000,15000,excellent,petrol,automatic,3.5
Audi,A4,2020,36000,28000,excellent,petrol,automatic,2.0
Toyota,Corolla,2021,20000,25000,excellent,petrol,automatic,1.8
Honda,Civic,2020,22000,32000,good,petrol,automatic,2.0
BMW,5 Series,2019,45000,38000,good,petrol,automatic,3.0
Mercedes,E-Class,2021,55000,18000,excellent,petrol,automatic,2.0
Tesla,Model Y,2022,52000,8000,excellent,electric,automatic,0
Ford,Mustang,2020,35000,28000,excellent,petrol,manual,5.0
Chevrolet,Malibu,2019,19000,48000,fair,petrol,automatic,1.5
Nissan,Maxima,2020,28000,32000,good,petrol,automatic,3.5
Volkswagen,Jetta,2021,21000,20000,excellent,petrol,automatic,1.4
Hyundai,Sonata,2020,22000,35000,good,petrol,automatic,2.5
Kia,Forte,2021,18000,18000,excellent,petrol,automatic,2.0
Mazda,3,2020,21000,30000,good,petrol,automatic,2.5
Lexus,IS,2019,35000,40000,good,petrol,automatic,2.0
Audi,A6,2021,50000,15000,excellent,petrol,automatic,3.0
Toyota,RAV4,2020,28000,35000,good,petrol,automatic,2.5
Honda,CR-V,2021,30000,22000,excellent,petrol,automatic,1.5
BMW,X3,2020,42000,28000,excellent,petrol,automatic,2.0
Mercedes,GLC,2021,48000,15000,excellent,petrol,automatic,2.0
Tesla,Model S,2020,65000,35000,good,electric,automatic,0
Ford,Explorer,2019,32000,52000,good,petrol,automatic,3.5
Chevrolet,Equinox,2020,25000,40000,good,petrol,automatic,1.5
Nissan,Rogue,2021,26000,25000,excellent,petrol,automatic,2.5
Volkswagen,Tiguan,2020,28000,32000,good,petrol,automatic,2.0
Hyundai,Tucson,2021,26000,18000,excellent,petrol,automatic,2.4
Kia,Sportage,2020,24000,28000,good,petrol,automatic,2.4
Mazda,CX-5,2021,28000,20000,excellent,petrol,automatic,2.5
Lexus,RX,2020,45000,30000,excellent,petrol,automatic,3.5
Audi,Q5,2021,48000,18000,excellent,petrol,automatic,2.0
Toyota,Highlander,2019,35000,45000,good,petrol,automatic,3.5
Honda,Pilot,2020,36000,35000,good,petrol,automatic,3.5
BMW,X5,2021,60000,20000,excellent,petrol,automatic,3.0
Mercedes,GLE,2020,62000,28000,excellent,petrol,automatic,3.0
Tesla,Model X,2021,75000,18000,excellent,electric,automatic,0
Ford,Edge,2020,30000,38000,good,petrol,automatic,2.0
Chevrolet,Traverse,2019,28000,48000,fair,petrol,automatic,3.6
Porsche,Macan,2021,58000,22000,excellent,petrol,automatic,2.0"""
